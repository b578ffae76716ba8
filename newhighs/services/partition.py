from __future__ import annotations

from typing import List, Sequence


def partition_symbols(symbols: Sequence[str], batch_size: int) -> List[List[str]]:
    """
    Split symbols into consecutive batches of batch_size, keeping input order.
    Only the last batch may be shorter. Duplicates are kept; dedup happens after fetching.
    """
    size = int(batch_size)
    if size <= 0:
        raise ValueError(f"batch_size must be > 0, got {batch_size!r}")
    items = list(symbols)
    return [items[i : i + size] for i in range(0, len(items), size)]
