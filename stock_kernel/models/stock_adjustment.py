"""
Module: stock_kernel.models.stock_adjustment
Responsibility: Header and lines of a manual stock adjustment.
Architecture position: Kernel > Models.  Written once by AdjustmentProcessor.

Invariants enforced:
    - Created once per request and immutable thereafter (ORM listeners).
    - Each line satisfies quantity_after == quantity_before + quantity_adjusted.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TenantScopedBase, TrackedBase, UUIDString


class StockAdjustment(TenantScopedBase):
    """Adjustment document header."""

    __tablename__ = "stock_adjustments"

    __table_args__ = (
        UniqueConstraint("tenant_id", "adjustment_number", name="uq_adjustment_number"),
        Index("idx_adjustment_warehouse", "tenant_id", "warehouse_id"),
    )

    adjustment_number: Mapped[str] = mapped_column(String(30), nullable=False)

    warehouse_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    adjustment_date: Mapped[datetime] = mapped_column(nullable=False)

    reason: Mapped[str] = mapped_column(String(30), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    adjusted_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    items: Mapped[list["StockAdjustmentItem"]] = relationship(
        back_populates="adjustment",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="StockAdjustmentItem.line_number",
    )

    def __repr__(self) -> str:
        return f"<StockAdjustment {self.adjustment_number}>"


class StockAdjustmentItem(TrackedBase):
    """One adjusted product on an adjustment."""

    __tablename__ = "stock_adjustment_items"

    __table_args__ = (
        Index("idx_adjustment_item_header", "adjustment_id"),
    )

    adjustment_id: Mapped[UUID] = mapped_column(
        ForeignKey("stock_adjustments.id"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    variant_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    quantity_before: Mapped[int] = mapped_column(Integer, nullable=False)

    quantity_after: Mapped[int] = mapped_column(Integer, nullable=False)

    quantity_adjusted: Mapped[int] = mapped_column(Integer, nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    adjustment: Mapped[StockAdjustment] = relationship(back_populates="items")
