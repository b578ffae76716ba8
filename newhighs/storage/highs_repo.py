from __future__ import annotations

from typing import List, Optional, Sequence

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from newhighs.storage.orm_models import NewHighORM, PullTimeORM


class NewHighRepo:
    def __init__(self, session: AsyncSession):
        self.s = session

    async def add_many(self, rows: Sequence[dict]) -> int:
        objs = [NewHighORM(**row) for row in rows]
        self.s.add_all(objs)
        await self.s.flush()
        return len(objs)

    async def list_recent_first(self) -> List[NewHighORM]:
        stmt = select(NewHighORM).order_by(desc(NewHighORM.created_at), desc(NewHighORM.id))
        return (await self.s.execute(stmt)).scalars().all()


class PullTimeRepo:
    def __init__(self, session: AsyncSession):
        self.s = session

    async def add(self, pull_time: str) -> PullTimeORM:
        row = PullTimeORM(pull_time=str(pull_time))
        self.s.add(row)
        await self.s.flush()
        return row

    async def latest(self) -> Optional[PullTimeORM]:
        stmt = select(PullTimeORM).order_by(desc(PullTimeORM.created_at), desc(PullTimeORM.id)).limit(1)
        return (await self.s.execute(stmt)).scalars().first()
