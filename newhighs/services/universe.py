from __future__ import annotations

import json
from pathlib import Path
from typing import List, Union

from newhighs.utils.textutils import normalize_symbol

UNIVERSE_KEY = "sp500_tickers"


class UniverseError(RuntimeError):
    """The ticker universe file is missing, unreadable, or malformed."""


def load_universe(path: Union[str, Path]) -> List[str]:
    """
    Read {"sp500_tickers": ["AAPL", ...]} (a bare JSON list is accepted too).
    Order and duplicates are preserved.
    """
    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise UniverseError(f"cannot load tickers from {p}: {e}") from e

    tickers = raw.get(UNIVERSE_KEY) if isinstance(raw, dict) else raw
    if not isinstance(tickers, list):
        raise UniverseError(f"{p}: expected a list under {UNIVERSE_KEY!r}")

    try:
        return [normalize_symbol(t) for t in tickers]
    except ValueError as e:
        raise UniverseError(f"{p}: {e}") from e
