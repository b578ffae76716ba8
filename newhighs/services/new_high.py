from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from newhighs.logging_config import get_logger
from newhighs.models import Quote, RawQuote

logger = get_logger("new_high")

CENT = Decimal("0.01")


def _round2(x: float) -> float:
    return float(Decimal(x).quantize(CENT, rounding=ROUND_HALF_UP))


def growth_percent(price: Optional[float], high52: Optional[float], low52: Optional[float]) -> Optional[float]:
    """
    (price - low52) / low52 * 100, rounded to 2 decimals.

    Rounding works on the exact binary value of the float with ties away from
    zero, so 0.125 becomes 0.13 (not banker's 0.12).

    Only attempted when high52 and price are both truthy (the guard is deliberately
    not on low52). A zero or missing low52 gives None.
    """
    if not (high52 and price):
        return None
    if not low52:
        return None
    g = (price - low52) / low52 * 100.0
    if not math.isfinite(g):
        return None
    return _round2(g)


def derive_quote(raw: RawQuote) -> Optional[Quote]:
    if not raw.symbol or raw.last_trade is None or raw.high52 is None:
        return None

    price = raw.last_trade
    is_new_high = price >= raw.high52
    if is_new_high:
        logger.info("new_high | symbol=%s price=%s high52=%s", raw.symbol, price, raw.high52)

    return Quote(
        symbol=raw.symbol,
        company_name=raw.company_name or "",
        ask=raw.ask,
        ask_size=raw.ask_size,
        bid=raw.bid,
        bid_size=raw.bid_size,
        high52=raw.high52,
        low52=raw.low52,
        average_volume=raw.average_volume,
        price=price,
        growth_percent=growth_percent(price, raw.high52, raw.low52),
        industry=raw.industry or "",
        is_new_high=is_new_high,
    )
