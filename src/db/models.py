from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, Date, DateTime, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class DecimalAsString(TypeDecorator):
    impl = String
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: object) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value: str | None, dialect: object) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    pass


class AssetOrm(Base):
    __tablename__ = "assets"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ticker: Mapped[str] = mapped_column(String, nullable=False, index=True)
    quantity: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    purchase_price_usd: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    original_currency: Mapped[str] = mapped_column(String, nullable=False)
    original_purchase_price: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    current_price_usd: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    purchase_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Flat freeze columns; the repository maps them onto Live | Frozen.
    is_frozen: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    frozen_price_usd: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    frozen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    frozen_source: Mapped[str | None] = mapped_column(String, nullable=True)
