"""
Module: stock_kernel.models.sale
Responsibility: The slice of a sale that the stock ledger needs -- header
    status and per-line deducted quantities.  Pricing, discounts and tax are
    owned elsewhere.
Architecture position: Kernel > Models.  Written by SaleStockDeductor.

Invariants enforced:
    - VOIDED is terminal: the ORM listener rejects modification of a sale
      that was already voided.
    - quantity_deducted is what void restores, so an untracked product
      (deducted 0) is never "restored" into stock.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TenantScopedBase, TrackedBase, UUIDString


class SaleStatus(str, Enum):
    """Lifecycle status of a sale.  Only COMPLETED -> VOIDED is driven here."""

    COMPLETED = "completed"
    HELD = "held"
    RETURNED = "returned"
    PARTIALLY_RETURNED = "partially_returned"
    VOIDED = "voided"


class Sale(TenantScopedBase):
    """Sale header."""

    __tablename__ = "sales"

    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_sale_invoice_number"),
        Index("idx_sale_warehouse", "tenant_id", "warehouse_id"),
    )

    invoice_number: Mapped[str] = mapped_column(String(30), nullable=False)

    warehouse_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    customer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    cashier_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    status: Mapped[SaleStatus] = mapped_column(
        String(20),
        default=SaleStatus.COMPLETED,
        nullable=False,
    )

    sale_date: Mapped[datetime] = mapped_column(nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Staff-only notes; void appends "[VOIDED] ..." lines here
    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["SaleItem"]] = relationship(
        back_populates="sale",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SaleItem.line_number",
    )

    def __repr__(self) -> str:
        return f"<Sale {self.invoice_number} status={self.status}>"


class SaleItem(TrackedBase):
    """One sold product, with catalog fields snapshotted at sale time."""

    __tablename__ = "sale_items"

    __table_args__ = (
        Index("idx_sale_item_header", "sale_id"),
    )

    sale_id: Mapped[UUID] = mapped_column(
        ForeignKey("sales.id"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    variant_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    product_name: Mapped[str] = mapped_column(String(200), nullable=False)

    sku: Mapped[str] = mapped_column(String(100), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)

    # 0 when the product does not track inventory
    quantity_deducted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    sale: Mapped[Sale] = relationship(back_populates="items")
