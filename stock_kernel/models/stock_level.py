"""
Module: stock_kernel.models.stock_level
Responsibility: The per-(tenant, product, variant, warehouse) quantity row.
    Every stock mutation in the system lands on exactly one of these rows,
    always through StockLedger.apply_delta.
Architecture position: Kernel > Models.  Written only by StockLedger.

Invariants enforced:
    - Exactly one row per identifying tuple.  The tuple is folded into
      ``stock_key`` (unique) because a NULL variant would otherwise defeat a
      composite unique constraint on most backends.
    - reserved_quantity >= 0 (CHECK constraint; also checked by StockLedger).
    - ``version`` is the optimistic version stamp (SQLAlchemy
      version_id_col).  A stale UPDATE matches zero rows and raises
      StaleDataError, which StockLedger converts into OptimisticLockError.
    - Never deleted while quantity != 0 (ORM listener in db/immutability.py).

Failure modes:
    - IntegrityError on duplicate stock_key (concurrent lazy creation;
      handled by StockLedger with a savepoint retry).
    - StaleDataError on concurrent modification.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TenantScopedBase, UUIDString


def make_stock_key(
    tenant_id: UUID,
    product_id: UUID,
    variant_id: UUID | None,
    warehouse_id: UUID,
) -> str:
    """Canonical identity string of a stock level row."""
    return f"{tenant_id}:{product_id}:{variant_id or '-'}:{warehouse_id}"


class StockLevel(TenantScopedBase):
    """
    On-hand and reserved quantity of a product at a warehouse.

    available_quantity = quantity - reserved_quantity is derived, never stored.
    """

    __tablename__ = "stock_levels"

    __table_args__ = (
        CheckConstraint("reserved_quantity >= 0", name="ck_stock_reserved_non_negative"),
        Index("idx_stock_level_warehouse", "tenant_id", "warehouse_id"),
        Index("idx_stock_level_product", "tenant_id", "product_id"),
    )

    stock_key: Mapped[str] = mapped_column(String(160), nullable=False, unique=True)

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    variant_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    warehouse_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # On-hand quantity (signed)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Encumbered by pending transfers
    reserved_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_updated: Mapped[datetime | None] = mapped_column(nullable=True)

    # Optimistic version stamp
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<StockLevel {self.stock_key} qty={self.quantity} "
            f"reserved={self.reserved_quantity}>"
        )

    @property
    def available_quantity(self) -> int:
        """On-hand stock not encumbered by a reservation."""
        return self.quantity - self.reserved_quantity
