"""
AdjustmentProcessor -- manual, single-shot stock corrections.

Responsibility:
    Applies a signed quantity change per line (found stock, damage,
    stock-take corrections, ...) to one warehouse, records an Adjustment
    transaction per line, and writes an immutable StockAdjustment document
    with before/after/adjusted quantities.

Architecture position:
    Kernel > Services.  Invoked through InventoryOperations.adjust_stock.

Invariants enforced:
    - All lines succeed or none are persisted: any failure raises, and the
      caller rolls the whole unit of work back.
    - quantity_after == quantity_before + quantity_adjusted per line, and the
      recorded running balance equals quantity_after.
    - Lines are applied strictly in submission order, so two lines for the
      same product compound.

Failure modes:
    - EmptyItemsError / ZeroQuantityError / InvalidAdjustmentReasonError:
      malformed request.
    - WarehouseNotFoundError / ProductNotFoundError / VariantNotFoundError.
    - InsufficientStockError: a line would take stock below zero for a
      product that disallows negative stock.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.references import DocumentRef
from stock_kernel.domain.requests import AdjustmentReason, AdjustmentRequest
from stock_kernel.exceptions import (
    EmptyItemsError,
    InvalidAdjustmentReasonError,
    ZeroQuantityError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory_transaction import InventoryTransactionType
from stock_kernel.models.stock_adjustment import StockAdjustment, StockAdjustmentItem
from stock_kernel.services.base import BaseService
from stock_kernel.services.catalog_lookup import CatalogLookup
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_ledger import StockLedger
from stock_kernel.services.transaction_recorder import TransactionRecorder

logger = get_logger("services.adjustment_processor")

ENTITY = "StockAdjustment"


class AdjustmentProcessor(BaseService[StockAdjustment]):
    """Applies manual adjustments through the stock ledger."""

    def __init__(
        self,
        session: Session,
        ledger: StockLedger,
        recorder: TransactionRecorder,
        clock: Clock | None = None,
        sequences: SequenceService | None = None,
        number_prefix: str = "ADJ",
    ):
        super().__init__(session, clock)
        self._ledger = ledger
        self._recorder = recorder
        self._catalog = CatalogLookup(session)
        self._sequences = sequences or SequenceService(session)
        self._number_prefix = number_prefix

    def _validate(self, request: AdjustmentRequest) -> AdjustmentReason:
        if not request.items:
            raise EmptyItemsError(ENTITY)
        for line in request.items:
            if line.quantity_adjusted == 0:
                raise ZeroQuantityError(ENTITY, str(line.product_id), 0)
        try:
            return AdjustmentReason(request.reason)
        except ValueError:
            raise InvalidAdjustmentReasonError(request.reason) from None

    def adjust(
        self,
        tenant_id: UUID,
        request: AdjustmentRequest,
        actor_id: UUID | None = None,
    ) -> StockAdjustment:
        """
        Apply every line of ``request`` and return the flushed header.

        Postconditions:
            - One StockAdjustmentItem and one Adjustment transaction per line.
            - Header carries a fresh ADJ number and the item count equals the
              number of request lines.
        """
        reason = self._validate(request)
        self._sequences.lock_ledger(tenant_id)
        warehouse = self._catalog.warehouse(tenant_id, request.warehouse_id)

        now = self._clock.now()
        adjustment = StockAdjustment(
            id=uuid4(),
            tenant_id=tenant_id,
            adjustment_number=self._sequences.next_document_number(
                tenant_id, self._number_prefix, now
            ),
            warehouse_id=warehouse.id,
            adjustment_date=request.adjustment_date or now,
            reason=reason.value,
            notes=request.notes,
            adjusted_by=actor_id,
            created_at=now,
            created_by_id=actor_id,
        )
        self.session.add(adjustment)
        reference = DocumentRef.adjustment(adjustment.id)

        for line_number, line in enumerate(request.items, start=1):
            product = self._catalog.product(tenant_id, line.product_id)
            self._catalog.variant(product, line.variant_id)

            level = self._ledger.get_or_create(
                tenant_id, product.id, line.variant_id, warehouse.id
            )
            quantity_before = level.quantity
            self._ledger.apply_delta(
                level,
                line.quantity_adjusted,
                0,
                product.allow_negative_stock,
                product=product,
                entity_type=ENTITY,
            )
            self._recorder.record(
                tenant_id,
                level,
                InventoryTransactionType.ADJUSTMENT,
                line.quantity_adjusted,
                reference,
                reason=reason.value,
                notes=line.notes or request.notes,
                actor_id=actor_id,
            )
            adjustment.items.append(
                StockAdjustmentItem(
                    line_number=line_number,
                    product_id=product.id,
                    variant_id=line.variant_id,
                    quantity_before=quantity_before,
                    quantity_after=level.quantity,
                    quantity_adjusted=line.quantity_adjusted,
                    notes=line.notes,
                    created_at=now,
                    created_by_id=actor_id,
                )
            )

        self.session.flush()
        logger.info(
            "stock_adjustment_recorded",
            extra={
                "adjustment_id": str(adjustment.id),
                "adjustment_number": adjustment.adjustment_number,
                "warehouse_id": str(warehouse.id),
                "reason": reason.value,
                "item_count": len(adjustment.items),
            },
        )
        return adjustment
