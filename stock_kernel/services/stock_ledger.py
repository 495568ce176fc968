"""
StockLedger -- the only writer of StockLevel rows.

Responsibility:
    Owns the per-(tenant, product, variant, warehouse) quantity/reservation
    row.  Every adjustment, transfer leg, sale deduction and void
    restoration changes stock by calling ``apply_delta`` on a row obtained
    from ``get_or_create`` or ``find``.

Architecture position:
    Kernel > Services.  Called by AdjustmentProcessor, TransferCoordinator
    and SaleStockDeductor.  Does not write InventoryTransactions; callers
    pair each delta with a TransactionRecorder.record() in the same unit of
    work.

Invariants enforced:
    - Locked check-and-mutate: rows are read with ``SELECT ... FOR UPDATE``
      and the availability check and mutation happen inside one
      ``apply_delta`` call.  There is no separate "check" API a caller could
      race against.
    - Version stamp: StockLevel.version is SQLAlchemy's version_id_col.  A
      write based on a stale read fails with OptimisticLockError, which
      InventoryOperations retries.
    - reserved_quantity never goes below zero.
    - A reservation increase never pushes reserved_quantity above quantity.
    - When availability decreases and negative stock is not allowed,
      quantity and available_quantity stay >= 0.
    - Exactly one row per identity tuple (unique stock_key; concurrent lazy
      creation handled with a savepoint retry).

Failure modes:
    - InsufficientStockError: the delta would break one of the rules above.
      The row is left untouched.
    - OptimisticLockError: concurrent modification detected at flush.

Audit relevance:
    Every applied delta logs ``stock_level_changed`` with the before and
    after quantities.  Crossing the reorder level logs ``low_stock_alert``.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from stock_kernel.domain.clock import Clock
from stock_kernel.exceptions import InsufficientStockError, OptimisticLockError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.catalog import Product
from stock_kernel.models.stock_level import StockLevel, make_stock_key
from stock_kernel.services.base import BaseService

logger = get_logger("services.stock_ledger")


class StockLedger(BaseService[StockLevel]):
    """
    Locked, version-stamped access to stock levels.

    Contract:
        ``get_or_create`` returns a row locked for the rest of the caller's
        transaction.  ``apply_delta`` validates and applies a
        (quantity, reserved) delta to such a row and flushes.

    Non-goals:
        - Does NOT commit.
        - Does NOT record inventory transactions.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        low_stock_alerts: bool = True,
    ):
        super().__init__(session, clock)
        self._low_stock_alerts = low_stock_alerts

    def find(
        self,
        tenant_id: UUID,
        product_id: UUID,
        variant_id: UUID | None,
        warehouse_id: UUID,
    ) -> StockLevel | None:
        """Locked, freshly loaded stock level, or None if it was never created."""
        stock_key = make_stock_key(tenant_id, product_id, variant_id, warehouse_id)
        return self.session.execute(
            select(StockLevel)
            .where(StockLevel.stock_key == stock_key)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_or_create(
        self,
        tenant_id: UUID,
        product_id: UUID,
        variant_id: UUID | None,
        warehouse_id: UUID,
    ) -> StockLevel:
        """
        Fetch the stock level, creating an empty one on first movement.

        Postconditions:
            - Returned row is locked until the caller's transaction ends.
            - A newly created row has quantity 0 and reserved 0.
        """
        level = self.find(tenant_id, product_id, variant_id, warehouse_id)
        if level is not None:
            return level

        savepoint = self.session.begin_nested()
        try:
            level = StockLevel(
                tenant_id=tenant_id,
                stock_key=make_stock_key(tenant_id, product_id, variant_id, warehouse_id),
                product_id=product_id,
                variant_id=variant_id,
                warehouse_id=warehouse_id,
                quantity=0,
                reserved_quantity=0,
                last_updated=self._clock.now(),
            )
            self.session.add(level)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            # Another transaction created the row first
            logger.debug(
                "stock_level_create_race_retry",
                extra={"product_id": str(product_id), "warehouse_id": str(warehouse_id)},
            )
            savepoint.rollback()
            level = self.find(tenant_id, product_id, variant_id, warehouse_id)
            if level is None:
                raise
            return level

        logger.debug(
            "stock_level_created",
            extra={
                "stock_level_id": str(level.id),
                "product_id": str(product_id),
                "variant_id": str(variant_id) if variant_id else None,
                "warehouse_id": str(warehouse_id),
            },
        )
        return level

    def apply_delta(
        self,
        stock_level: StockLevel,
        quantity_delta: int,
        reserved_delta: int = 0,
        allow_negative: bool = False,
        *,
        product: Product | None = None,
        entity_type: str = "StockLevel",
    ) -> StockLevel:
        """
        Check and apply a delta to a locked stock level, then flush.

        Args:
            stock_level: Row from ``find``/``get_or_create`` in this session.
            quantity_delta: Signed change to on-hand quantity.
            reserved_delta: Signed change to reserved quantity.
            allow_negative: Permit on-hand/available below zero when the
                delta reduces availability.
            product: Used for the error message and reorder-level alert.
            entity_type: Document kind that qualifies the error code.

        Raises:
            InsufficientStockError: Rule violated; the row is unchanged.
            OptimisticLockError: The row changed underneath this session.
        """
        product_name = product.name if product is not None else str(stock_level.product_id)
        previous_quantity = stock_level.quantity
        previous_reserved = stock_level.reserved_quantity
        previous_available = stock_level.available_quantity

        new_quantity = previous_quantity + quantity_delta
        new_reserved = previous_reserved + reserved_delta
        new_available = new_quantity - new_reserved

        if new_reserved < 0:
            raise InsufficientStockError(
                product_name, previous_reserved, -reserved_delta,
                entity_type=entity_type, label="Release",
            )

        if reserved_delta > 0 and new_reserved > new_quantity:
            raise InsufficientStockError(
                product_name, previous_available, reserved_delta,
                entity_type=entity_type,
            )

        # INVARIANT: available >= 0 unless negative stock is allowed
        reduces_availability = quantity_delta < 0 or reserved_delta > 0
        if (
            reduces_availability
            and not allow_negative
            and (new_quantity < 0 or new_available < 0)
        ):
            requested = -quantity_delta if quantity_delta < 0 else reserved_delta
            raise InsufficientStockError(
                product_name, previous_available, requested,
                entity_type=entity_type,
            )

        stock_level.quantity = new_quantity
        stock_level.reserved_quantity = new_reserved
        stock_level.last_updated = self._clock.now()

        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "stock_level_version_conflict",
                extra={
                    "stock_level_id": str(stock_level.id),
                    "product_id": str(stock_level.product_id),
                    "warehouse_id": str(stock_level.warehouse_id),
                },
            )
            raise OptimisticLockError("StockLevel", str(stock_level.id)) from exc

        logger.info(
            "stock_level_changed",
            extra={
                "stock_level_id": str(stock_level.id),
                "product_id": str(stock_level.product_id),
                "warehouse_id": str(stock_level.warehouse_id),
                "previous_quantity": previous_quantity,
                "new_quantity": new_quantity,
                "quantity_changed": quantity_delta,
                "previous_reserved": previous_reserved,
                "new_reserved": new_reserved,
            },
        )

        if (
            self._low_stock_alerts
            and product is not None
            and quantity_delta < 0
            and new_quantity <= product.reorder_level
        ):
            logger.warning(
                "low_stock_alert",
                extra={
                    "product_id": str(product.id),
                    "product_name": product.name,
                    "sku": product.sku,
                    "warehouse_id": str(stock_level.warehouse_id),
                    "current_quantity": new_quantity,
                    "reorder_level": product.reorder_level,
                },
            )

        return stock_level
