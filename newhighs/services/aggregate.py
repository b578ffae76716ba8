from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from newhighs.models import Quote


def dedupe_quotes(quotes: Iterable[Optional[Quote]]) -> Dict[str, Quote]:
    """Fold quotes into a symbol-keyed map. The first quote seen for a symbol wins; None entries are skipped."""
    out: Dict[str, Quote] = {}
    for q in quotes:
        if q is None or not q.symbol:
            continue
        if q.symbol in out:
            continue
        out[q.symbol] = q
    return out


def merge_batches(batches: Iterable[Iterable[Optional[Quote]]]) -> List[Quote]:
    """Flatten per-batch quote lists in the given order and dedupe them."""
    return list(dedupe_quotes(q for batch in batches for q in batch).values())
