from __future__ import annotations


def normalize_symbol(symbol: object) -> str:
    """
    Ticker symbols are opaque: only surrounding whitespace is removed.
    Raises ValueError for non-strings and blanks.
    """
    if not isinstance(symbol, str):
        raise ValueError(f"Invalid symbol: {symbol!r} (expect non-empty string)")
    s = symbol.strip()
    if not s:
        raise ValueError(f"Invalid symbol: {symbol!r} (expect non-empty string)")
    return s
