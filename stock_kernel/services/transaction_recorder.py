"""
TransactionRecorder -- appends immutable inventory ledger entries.

Responsibility:
    Writes one InventoryTransaction per StockLedger.apply_delta call,
    snapshotting the stock level's post-delta quantity as the running
    balance and linking the entry to its source document.

Architecture position:
    Kernel > Services.  Used by every stock mutator right after the
    matching ledger call, in the same session and transaction.

Invariants enforced:
    - running_balance is read from the StockLevel the delta was just applied
      to, so it cannot disagree with the ledger.
    - sequence comes from the per-tenant locked counter, so replay order is
      recording order.
    - Entries are append-only (ORM listeners in db/immutability.py).
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.references import DocumentRef
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory_transaction import (
    InventoryTransaction,
    InventoryTransactionType,
)
from stock_kernel.models.stock_level import StockLevel
from stock_kernel.services.base import BaseService
from stock_kernel.services.sequence_service import SequenceService

logger = get_logger("services.transaction_recorder")


class TransactionRecorder(BaseService[InventoryTransaction]):
    """Append-only writer for the inventory transaction ledger."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequences: SequenceService | None = None,
    ):
        super().__init__(session, clock)
        self._sequences = sequences or SequenceService(session)

    def record(
        self,
        tenant_id: UUID,
        stock_level: StockLevel,
        transaction_type: InventoryTransactionType,
        quantity_delta: int,
        reference: DocumentRef,
        reason: str | None = None,
        unit_cost: Decimal | None = None,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> InventoryTransaction:
        """
        Record a delta that was just applied to ``stock_level``.

        Preconditions:
            - ``stock_level`` belongs to ``tenant_id`` and already reflects
              ``quantity_delta`` (StockLedger.apply_delta has run).

        Returns:
            The flushed InventoryTransaction.
        """
        if stock_level.tenant_id != tenant_id:
            raise ValueError(
                f"Stock level {stock_level.id} does not belong to tenant {tenant_id}"
            )

        total_cost = None
        if unit_cost is not None:
            total_cost = unit_cost * abs(quantity_delta)

        transaction = InventoryTransaction(
            tenant_id=tenant_id,
            product_id=stock_level.product_id,
            variant_id=stock_level.variant_id,
            warehouse_id=stock_level.warehouse_id,
            transaction_type=transaction_type,
            quantity=quantity_delta,
            unit_cost=unit_cost,
            total_cost=total_cost,
            running_balance=stock_level.quantity,
            reference_type=reference.kind.value,
            reference_id=reference.document_id,
            reason=reason,
            notes=notes,
            sequence=self._sequences.next_transaction_sequence(tenant_id),
            created_at=self._clock.now(),
            created_by_id=actor_id,
        )
        self.session.add(transaction)
        self.session.flush()

        logger.debug(
            "inventory_transaction_recorded",
            extra={
                "transaction_id": str(transaction.id),
                "transaction_type": transaction_type.value,
                "quantity": quantity_delta,
                "running_balance": transaction.running_balance,
                "reference": str(reference),
            },
        )
        return transaction
