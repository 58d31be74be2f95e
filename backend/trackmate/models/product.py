"""TrackMate — Product and StockMovement models."""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from trackmate.core.exceptions import EntityKind
from trackmate.db.base import Base, TenantMixin, enum_column, utcnow
from trackmate.models.enums import ProductStatus, StockReason


class Product(TenantMixin, Base):
    """Catalog product. ``stock_quantity`` is only written by the InventoryAdjuster."""

    __tablename__ = "products"
    __entity_kind__ = EntityKind.PRODUCT

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[ProductStatus] = mapped_column(enum_column(ProductStatus), nullable=False, default=ProductStatus.ACTIVE)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class StockMovement(Base):
    """Append-only record of every stock delta actually applied. No UPDATE or DELETE."""

    __tablename__ = "stock_movements"
    __table_args__ = (Index("ix_stock_movements_reference", "reference_type", "reference_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    product_id: Mapped[int] = mapped_column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    # requested may differ from applied when a deduction was clamped at zero
    requested_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[StockReason] = mapped_column(enum_column(StockReason, 30), nullable=False)
    reference_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    reference_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    actor: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
