# newhighs/services/highs_store.py
from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from newhighs.logging_config import get_logger
from newhighs.models import Quote, StoredHigh
from newhighs.storage.db import session_scope
from newhighs.storage.highs_repo import NewHighRepo, PullTimeRepo
from newhighs.utils.timeutils import fmt_iso

logger = get_logger("highs_store")


class HighsStore(Protocol):
    """Persistence contract the pipeline relies on."""

    async def insert_highs(self, quotes: Sequence[Quote]) -> int: ...

    async def list_historical(self) -> List[StoredHigh]: ...

    async def record_pull_time(self, pull_time: str) -> None: ...

    async def latest_pull_time(self) -> Optional[str]: ...


def _quote_row(q: Quote) -> dict:
    return {
        "symbol": q.symbol,
        "company_name": q.company_name or "",
        "ask": q.ask,
        "ask_size": q.ask_size,
        "bid": q.bid,
        "bid_size": q.bid_size,
        "high52": q.high52,
        "low52": q.low52,
        "average_volume": q.average_volume,
        "price": q.price,
        "growth_percent": q.growth_percent,
        "industry": q.industry or "",
        "is_new_high": 1 if q.is_new_high else 0,
    }


class HighsStoreDB:
    """
    SQLAlchemy-backed store for quote history and pull times.
    Each call runs in its own session/transaction.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def insert_highs(self, quotes: Sequence[Quote]) -> int:
        if not quotes:
            raise ValueError("No valid highs provided")
        rows = [_quote_row(q) for q in quotes]
        async with session_scope(self.session_factory) as s:
            n = await NewHighRepo(s).add_many(rows)
        logger.info("highs_inserted | rows=%s", n)
        return n

    async def list_historical(self) -> List[StoredHigh]:
        async with session_scope(self.session_factory) as s:
            rows = await NewHighRepo(s).list_recent_first()
            out = [
                StoredHigh(
                    id=int(r.id),
                    symbol=r.symbol,
                    company_name=r.company_name or "",
                    ask=r.ask,
                    ask_size=r.ask_size,
                    bid=r.bid,
                    bid_size=r.bid_size,
                    high52=r.high52,
                    low52=r.low52,
                    average_volume=r.average_volume,
                    price=r.price,
                    growth_percent=r.growth_percent,
                    industry=r.industry or "",
                    is_new_high=bool(r.is_new_high),
                    created_at=fmt_iso(r.created_at),
                )
                for r in rows
            ]
        logger.info("highs_listed | rows=%s", len(out))
        return out

    async def record_pull_time(self, pull_time: str) -> None:
        if not pull_time:
            raise ValueError("Missing timestamp")
        async with session_scope(self.session_factory) as s:
            await PullTimeRepo(s).add(pull_time)
        logger.info("pull_time_recorded | pull_time=%s", pull_time)

    async def latest_pull_time(self) -> Optional[str]:
        async with session_scope(self.session_factory) as s:
            row = await PullTimeRepo(s).latest()
            return row.pull_time if row else None
