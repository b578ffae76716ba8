# newhighs/storage/orm_models.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    Integer,
    Float,
    DateTime,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from newhighs.storage.db import Base


class NewHighORM(Base):
    """One quote row per symbol per pull (history is append-only)."""

    __tablename__ = "new_highs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    symbol: Mapped[str] = mapped_column(String(32), index=True)
    company_name: Mapped[str] = mapped_column(String(256), default="")

    ask: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ask_size: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    bid: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    bid_size: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    high52: Mapped[float] = mapped_column(Float)
    low52: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    average_volume: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    price: Mapped[float] = mapped_column(Float)
    growth_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    industry: Mapped[str] = mapped_column(String(128), default="")
    is_new_high: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)


Index("ix_new_highs_symbol_created", NewHighORM.symbol, NewHighORM.created_at)


class PullTimeORM(Base):
    __tablename__ = "pull_times"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    pull_time: Mapped[str] = mapped_column(String(64))  # "MM/DD/YY, HH:MM EST"
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
