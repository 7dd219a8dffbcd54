"""SQLAlchemy ORM models for the trader schema."""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from webhook_trader.db.base import Base

SCHEMA = "trader"


class TradeRow(Base):
    """One executed signal: the signal, the exchange order and the result."""

    __tablename__ = "trades"
    __table_args__ = {"schema": SCHEMA}

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    symbol: Mapped[str] = mapped_column(Text, nullable=False)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    order_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, default=True)
    record: Mapped[dict] = mapped_column(JSONB, nullable=False)


class StateRow(Base):
    """Key/value documents: "state" (users, strategies, webhook) and "settings"."""

    __tablename__ = "state"
    __table_args__ = {"schema": SCHEMA}

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[dict] = mapped_column(JSONB, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
