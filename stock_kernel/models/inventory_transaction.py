"""
Module: stock_kernel.models.inventory_transaction
Responsibility: The append-only stock ledger.  One row per quantity change
    at one stock level, carrying the running balance immediately after the
    change and a typed reference to the document that caused it.
Architecture position: Kernel > Models.  Written only by TransactionRecorder.

Invariants enforced:
    - Immutable once written: ORM listeners block UPDATE and DELETE.
    - running_balance equals StockLevel.quantity right after this delta.
    - Replaying quantity deltas for a stock level in sequence order
      reproduces the current StockLevel.quantity.

Audit relevance:
    This table is the audit trail of every stock movement.  Selectors read
    it newest first for display and oldest first for replay verification.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TenantScopedBase, UUIDString
from stock_kernel.domain.references import DocumentRef, ReferenceKind


class InventoryTransactionType(str, Enum):
    """Kind of stock movement."""

    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"


class InventoryTransaction(TenantScopedBase):
    """
    A single signed quantity change at a stock level.

    ``sequence`` is allocated from a locked per-tenant counter, so it is
    strictly increasing in recording order even when several transactions
    share one clock instant.  Replay orders by it.
    """

    __tablename__ = "inventory_transactions"

    __table_args__ = (
        Index(
            "idx_inv_txn_stock",
            "tenant_id", "product_id", "variant_id", "warehouse_id",
        ),
        Index("idx_inv_txn_reference", "reference_type", "reference_id"),
        Index("idx_inv_txn_created", "tenant_id", "created_at"),
        UniqueConstraint("tenant_id", "sequence", name="uq_inv_txn_tenant_sequence"),
    )

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    variant_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    warehouse_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    transaction_type: Mapped[InventoryTransactionType] = mapped_column(
        String(20),
        nullable=False,
    )

    # Signed delta applied to StockLevel.quantity
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    total_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    # StockLevel.quantity immediately after this delta
    running_balance: Mapped[int] = mapped_column(Integer, nullable=False)

    reference_type: Mapped[str] = mapped_column(String(30), nullable=False)

    reference_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    reason: Mapped[str | None] = mapped_column(String(30), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Strictly increasing per tenant; replay order
    sequence: Mapped[int] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction {self.transaction_type} "
            f"{self.quantity:+d} -> {self.running_balance}>"
        )

    @property
    def reference(self) -> DocumentRef:
        """Typed view of the (reference_type, reference_id) column pair."""
        return DocumentRef(ReferenceKind(self.reference_type), self.reference_id)

    @property
    def occurred_at(self) -> datetime:
        return self.created_at
