"""
Module: stock_kernel.models.stock_transfer
Responsibility: Header and lines of a two-phase inter-warehouse transfer.
Architecture position: Kernel > Models.  Written by TransferCoordinator.

Invariants enforced:
    - Status only moves forward:
        PENDING -> IN_TRANSIT -> COMPLETED
        PENDING | IN_TRANSIT -> CANCELLED
    - COMPLETED and CANCELLED are terminal; the ORM listener rejects any
      modification of a transfer that was already terminal.
    - While PENDING or IN_TRANSIT, each item's quantity is held as
      reserved_quantity on the source stock level.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TenantScopedBase, TrackedBase, UUIDString


class StockTransferStatus(str, Enum):
    """Lifecycle status of a stock transfer.

    Contract: Transitions are one-way; COMPLETED and CANCELLED are terminal.
    """

    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


OPEN_TRANSFER_STATUSES = frozenset(
    {StockTransferStatus.PENDING, StockTransferStatus.IN_TRANSIT}
)

TERMINAL_TRANSFER_STATUSES = frozenset(
    {StockTransferStatus.COMPLETED, StockTransferStatus.CANCELLED}
)


class StockTransfer(TenantScopedBase):
    """Transfer document header."""

    __tablename__ = "stock_transfers"

    __table_args__ = (
        UniqueConstraint("tenant_id", "transfer_number", name="uq_transfer_number"),
        Index("idx_transfer_status", "tenant_id", "status"),
    )

    transfer_number: Mapped[str] = mapped_column(String(30), nullable=False)

    from_warehouse_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    to_warehouse_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    status: Mapped[StockTransferStatus] = mapped_column(
        String(20),
        default=StockTransferStatus.PENDING,
        nullable=False,
    )

    transfer_date: Mapped[datetime] = mapped_column(nullable=False)

    transferred_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    received_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    received_date: Mapped[datetime | None] = mapped_column(nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["StockTransferItem"]] = relationship(
        back_populates="transfer",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="StockTransferItem.line_number",
    )

    def __repr__(self) -> str:
        return f"<StockTransfer {self.transfer_number} status={self.status}>"

    @property
    def is_open(self) -> bool:
        return StockTransferStatus(self.status) in OPEN_TRANSFER_STATUSES


class StockTransferItem(TrackedBase):
    """One product moved by a transfer."""

    __tablename__ = "stock_transfer_items"

    __table_args__ = (
        Index("idx_transfer_item_header", "transfer_id"),
    )

    transfer_id: Mapped[UUID] = mapped_column(
        ForeignKey("stock_transfers.id"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    variant_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    received_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    transfer: Mapped[StockTransfer] = relationship(back_populates="items")
