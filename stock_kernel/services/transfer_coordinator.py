"""
TransferCoordinator -- two-phase stock movement between warehouses.

Responsibility:
    Drives the StockTransfer state machine:

        initiate  ->  PENDING       reserve at source, no transaction
        dispatch  ->  IN_TRANSIT    no stock effect
        complete  ->  COMPLETED     move stock, two transactions per item
        cancel    ->  CANCELLED     release reservation, no transaction

Architecture position:
    Kernel > Services.  Invoked through InventoryOperations.

Invariants enforced:
    - Initiation is a pure encumbrance: source reserved_quantity rises by
      the item quantity, on-hand quantity is unchanged.  Available stock at
      the source must cover the request regardless of the product's
      negative-stock flag.
    - Completion decrements source quantity and reserved_quantity by the
      same amount, increments the destination, and records an outgoing
      and an incoming Transfer transaction that both reference the transfer.
    - COMPLETED and CANCELLED are terminal.  Completing or cancelling twice
      fails with TransferStatusError before any mutation.
    - The transfer header is read with SELECT ... FOR UPDATE so two
      concurrent completions serialize and the loser sees COMPLETED.
    - initiate, complete and cancel take the tenant ledger lock before the
      header or any stock level, so they cannot deadlock with sales or
      adjustments touching the same rows.

Failure modes:
    - EmptyItemsError / ZeroQuantityError / SameWarehouseError on initiate.
    - WarehouseNotFoundError / ProductNotFoundError / TransferNotFoundError.
    - InsufficientStockError when the source cannot cover the reservation.
    - TransferStatusError on a disallowed transition.
    - EmptyTransferError when completing a transfer without items.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.references import DocumentRef
from stock_kernel.domain.requests import TransferRequest
from stock_kernel.exceptions import (
    EmptyItemsError,
    EmptyTransferError,
    InsufficientStockError,
    SameWarehouseError,
    TransferNotFoundError,
    TransferStatusError,
    ZeroQuantityError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory_transaction import InventoryTransactionType
from stock_kernel.models.stock_transfer import (
    OPEN_TRANSFER_STATUSES,
    StockTransfer,
    StockTransferItem,
    StockTransferStatus,
)
from stock_kernel.services.base import BaseService
from stock_kernel.services.catalog_lookup import CatalogLookup
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_ledger import StockLedger
from stock_kernel.services.transaction_recorder import TransactionRecorder

logger = get_logger("services.transfer_coordinator")

ENTITY = "StockTransfer"


class TransferCoordinator(BaseService[StockTransfer]):
    """Reserve-then-complete transfers between two warehouses."""

    def __init__(
        self,
        session: Session,
        ledger: StockLedger,
        recorder: TransactionRecorder,
        clock: Clock | None = None,
        sequences: SequenceService | None = None,
        number_prefix: str = "TRF",
    ):
        super().__init__(session, clock)
        self._ledger = ledger
        self._recorder = recorder
        self._catalog = CatalogLookup(session)
        self._sequences = sequences or SequenceService(session)
        self._number_prefix = number_prefix

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_for_update(self, tenant_id: UUID, transfer_id: UUID) -> StockTransfer:
        transfer = self.session.execute(
            select(StockTransfer)
            .where(
                StockTransfer.id == transfer_id,
                StockTransfer.tenant_id == tenant_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if transfer is None:
            raise TransferNotFoundError(str(transfer_id))
        return transfer

    @staticmethod
    def _status(transfer: StockTransfer) -> StockTransferStatus:
        return StockTransferStatus(transfer.status)

    def _require_open(self, transfer: StockTransfer, action: str) -> None:
        status = self._status(transfer)
        if status not in OPEN_TRANSFER_STATUSES:
            logger.warning(
                "transfer_transition_rejected",
                extra={
                    "transfer_id": str(transfer.id),
                    "status": status.value,
                    "action": action,
                },
            )
            raise TransferStatusError(str(transfer.id), status.value, action)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def initiate(
        self,
        tenant_id: UUID,
        request: TransferRequest,
        actor_id: UUID | None = None,
    ) -> StockTransfer:
        """Reserve every item at the source and create a PENDING transfer."""
        if not request.items:
            raise EmptyItemsError(ENTITY)
        if request.from_warehouse_id == request.to_warehouse_id:
            raise SameWarehouseError(str(request.from_warehouse_id))
        for line in request.items:
            if line.quantity <= 0:
                raise ZeroQuantityError(ENTITY, str(line.product_id), line.quantity)

        self._sequences.lock_ledger(tenant_id)
        source = self._catalog.warehouse(tenant_id, request.from_warehouse_id)
        destination = self._catalog.warehouse(tenant_id, request.to_warehouse_id)

        now = self._clock.now()
        transfer = StockTransfer(
            id=uuid4(),
            tenant_id=tenant_id,
            transfer_number=self._sequences.next_document_number(
                tenant_id, self._number_prefix, now
            ),
            from_warehouse_id=source.id,
            to_warehouse_id=destination.id,
            status=StockTransferStatus.PENDING,
            transfer_date=now,
            transferred_by=actor_id,
            notes=request.notes,
            created_at=now,
            created_by_id=actor_id,
        )

        for line_number, line in enumerate(request.items, start=1):
            product = self._catalog.product(tenant_id, line.product_id)
            self._catalog.variant(product, line.variant_id)

            level = self._ledger.find(tenant_id, product.id, line.variant_id, source.id)
            if level is None:
                raise InsufficientStockError(
                    product.name, 0, line.quantity, entity_type=ENTITY
                )
            # Reservation always requires real availability
            self._ledger.apply_delta(
                level, 0, line.quantity, False, product=product, entity_type=ENTITY
            )
            transfer.items.append(
                StockTransferItem(
                    line_number=line_number,
                    product_id=product.id,
                    variant_id=line.variant_id,
                    quantity=line.quantity,
                    notes=line.notes,
                    created_at=now,
                    created_by_id=actor_id,
                )
            )

        self.session.add(transfer)
        self.session.flush()
        logger.info(
            "stock_transfer_initiated",
            extra={
                "transfer_id": str(transfer.id),
                "transfer_number": transfer.transfer_number,
                "from_warehouse_id": str(source.id),
                "to_warehouse_id": str(destination.id),
                "item_count": len(transfer.items),
            },
        )
        return transfer

    def dispatch(
        self,
        tenant_id: UUID,
        transfer_id: UUID,
        actor_id: UUID | None = None,
    ) -> StockTransfer:
        """PENDING -> IN_TRANSIT.  Stock stays reserved at the source."""
        transfer = self._load_for_update(tenant_id, transfer_id)
        status = self._status(transfer)
        if status != StockTransferStatus.PENDING:
            raise TransferStatusError(str(transfer.id), status.value, "dispatch")

        transfer.status = StockTransferStatus.IN_TRANSIT
        transfer.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "stock_transfer_dispatched",
            extra={"transfer_id": str(transfer.id), "transfer_number": transfer.transfer_number},
        )
        return transfer

    def complete(
        self,
        tenant_id: UUID,
        transfer_id: UUID,
        actor_id: UUID | None = None,
    ) -> StockTransfer:
        """Move reserved stock from source to destination and close the transfer."""
        self._sequences.lock_ledger(tenant_id)
        transfer = self._load_for_update(tenant_id, transfer_id)
        self._require_open(transfer, "complete")
        if not transfer.items:
            raise EmptyTransferError(str(transfer.id))

        source = self._catalog.warehouse(tenant_id, transfer.from_warehouse_id)
        destination = self._catalog.warehouse(tenant_id, transfer.to_warehouse_id)
        reference = DocumentRef.transfer(transfer.id)

        for item in transfer.items:
            product = self._catalog.product(tenant_id, item.product_id)

            outgoing = self._ledger.get_or_create(
                tenant_id, item.product_id, item.variant_id, source.id
            )
            self._ledger.apply_delta(
                outgoing,
                -item.quantity,
                -item.quantity,
                product.allow_negative_stock,
                product=product,
                entity_type=ENTITY,
            )
            self._recorder.record(
                tenant_id,
                outgoing,
                InventoryTransactionType.TRANSFER,
                -item.quantity,
                reference,
                notes=f"Transfer out to {destination.name}",
                actor_id=actor_id,
            )

            incoming = self._ledger.get_or_create(
                tenant_id, item.product_id, item.variant_id, destination.id
            )
            self._ledger.apply_delta(
                incoming,
                item.quantity,
                0,
                product.allow_negative_stock,
                product=product,
                entity_type=ENTITY,
            )
            self._recorder.record(
                tenant_id,
                incoming,
                InventoryTransactionType.TRANSFER,
                item.quantity,
                reference,
                notes=f"Transfer in from {source.name}",
                actor_id=actor_id,
            )
            item.received_quantity = item.quantity

        transfer.status = StockTransferStatus.COMPLETED
        transfer.received_by = actor_id
        transfer.received_date = self._clock.now()
        transfer.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "stock_transfer_completed",
            extra={
                "transfer_id": str(transfer.id),
                "transfer_number": transfer.transfer_number,
                "item_count": len(transfer.items),
            },
        )
        return transfer

    def cancel(
        self,
        tenant_id: UUID,
        transfer_id: UUID,
        reason: str | None = None,
        actor_id: UUID | None = None,
    ) -> StockTransfer:
        """Release every reservation and close the transfer as CANCELLED."""
        self._sequences.lock_ledger(tenant_id)
        transfer = self._load_for_update(tenant_id, transfer_id)
        self._require_open(transfer, "cancel")

        for item in transfer.items:
            product = self._catalog.find_product(tenant_id, item.product_id)
            level = self._ledger.get_or_create(
                tenant_id, item.product_id, item.variant_id, transfer.from_warehouse_id
            )
            self._ledger.apply_delta(
                level, 0, -item.quantity, True, product=product, entity_type=ENTITY
            )

        now = self._clock.now()
        note = f"[CANCELLED] {now:%Y-%m-%d %H:%M:%S}"
        if reason:
            note = f"{note}: {reason}"
        transfer.notes = f"{transfer.notes}\n{note}" if transfer.notes else note
        transfer.status = StockTransferStatus.CANCELLED
        transfer.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "stock_transfer_cancelled",
            extra={
                "transfer_id": str(transfer.id),
                "transfer_number": transfer.transfer_number,
                "reason": reason,
            },
        )
        return transfer
