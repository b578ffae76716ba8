from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _to_float(x: Any) -> Optional[float]:
    try:
        if x is None or isinstance(x, bool):
            return None
        v = float(x)
        return v if (v == v) else None  # NaN guard
    except (TypeError, ValueError):
        return None


def _to_str(x: Any) -> Optional[str]:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


@dataclass(frozen=True)
class RawQuote:
    """One provider QuoteData entry, unvalidated. Every field may be missing."""

    symbol: Optional[str] = None
    company_name: Optional[str] = None
    ask: Optional[float] = None
    ask_size: Optional[float] = None
    bid: Optional[float] = None
    bid_size: Optional[float] = None
    high52: Optional[float] = None
    low52: Optional[float] = None
    average_volume: Optional[float] = None
    last_trade: Optional[float] = None
    industry: Optional[str] = None

    @classmethod
    def from_provider(cls, item: Any) -> "RawQuote":
        """
        E*TRADE QuoteData shape:
          {"Product": {"symbol": "AAPL", ...}, "All": {"lastTrade": ..., "high52": ..., ...}}
        """
        if not isinstance(item, dict):
            return cls()
        product = item.get("Product") or {}
        all_ = item.get("All") or {}
        if not isinstance(product, dict):
            product = {}
        if not isinstance(all_, dict):
            all_ = {}
        return cls(
            symbol=_to_str(product.get("symbol")),
            company_name=_to_str(all_.get("companyName")),
            ask=_to_float(all_.get("ask")),
            ask_size=_to_float(all_.get("askSize")),
            bid=_to_float(all_.get("bid")),
            bid_size=_to_float(all_.get("bidSize")),
            high52=_to_float(all_.get("high52")),
            low52=_to_float(all_.get("low52")),
            average_volume=_to_float(all_.get("averageVolume")),
            last_trade=_to_float(all_.get("lastTrade")),
            industry=_to_str(all_.get("industry")),
        )


class Quote(BaseModel):
    """Validated quote with the derived new-high signal. Serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    symbol: str = Field(..., min_length=1)
    company_name: str = ""
    ask: Optional[float] = None
    ask_size: Optional[float] = None
    bid: Optional[float] = None
    bid_size: Optional[float] = None
    high52: float
    low52: Optional[float] = None
    average_volume: Optional[float] = None
    price: float
    growth_percent: Optional[float] = None
    industry: str = ""
    is_new_high: bool = False


class StoredHigh(Quote):
    id: int
    created_at: Optional[str] = None


class HighsIn(BaseModel):
    highs: Optional[List[Dict[str, Any]]] = None


class HistoricalHighs(BaseModel):
    highs: List[StoredHigh] = Field(default_factory=list)


class PullTimeIn(BaseModel):
    timestamp: Optional[str] = None
