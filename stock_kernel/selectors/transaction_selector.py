"""
Module: stock_kernel.selectors.transaction_selector
Responsibility: Read-only access to the inventory transaction ledger and
    replay verification against current stock levels.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Display order is newest first (sequence DESC).
    - Replay order is recording order (sequence ASC).
    - Replaying the signed deltas of one stock level reproduces its current
      quantity, and each running_balance equals the cumulative sum up to and
      including that entry.  verify_replay() reports the first entry where
      either statement fails.

Audit relevance:
    verify_replay() is the audit check that the stored StockLevel.quantity
    has not drifted from the append-only ledger.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stock_kernel.domain.references import DocumentRef
from stock_kernel.models.inventory_transaction import (
    InventoryTransaction,
    InventoryTransactionType,
)
from stock_kernel.models.stock_level import StockLevel, make_stock_key
from stock_kernel.selectors.base import BaseSelector, Page


@dataclass(frozen=True)
class TransactionInfo:
    """A single ledger entry."""

    transaction_id: UUID
    sequence: int
    product_id: UUID
    variant_id: UUID | None
    warehouse_id: UUID
    transaction_type: InventoryTransactionType
    quantity: int
    running_balance: int
    unit_cost: Decimal | None
    total_cost: Decimal | None
    reference: DocumentRef
    reason: str | None
    notes: str | None
    created_at: datetime
    created_by_id: UUID | None


@dataclass(frozen=True)
class ReplayCheck:
    """Outcome of replaying one stock level's ledger."""

    stock_key: str
    stored_quantity: int
    replayed_quantity: int
    transaction_count: int
    first_bad_sequence: int | None = None

    @property
    def matches(self) -> bool:
        return (
            self.stored_quantity == self.replayed_quantity
            and self.first_bad_sequence is None
        )


class TransactionSelector(BaseSelector[InventoryTransaction]):
    """Ledger queries."""

    def __init__(self, session: Session, page_size_default: int = 50, page_size_max: int = 500):
        super().__init__(session, page_size_default, page_size_max)

    @staticmethod
    def _to_info(txn: InventoryTransaction) -> TransactionInfo:
        return TransactionInfo(
            transaction_id=txn.id,
            sequence=txn.sequence,
            product_id=txn.product_id,
            variant_id=txn.variant_id,
            warehouse_id=txn.warehouse_id,
            transaction_type=InventoryTransactionType(txn.transaction_type),
            quantity=txn.quantity,
            running_balance=txn.running_balance,
            unit_cost=txn.unit_cost,
            total_cost=txn.total_cost,
            reference=txn.reference,
            reason=txn.reason,
            notes=txn.notes,
            created_at=txn.created_at,
            created_by_id=txn.created_by_id,
        )

    def _stock_filter(
        self,
        query,
        tenant_id: UUID,
        product_id: UUID,
        warehouse_id: UUID,
        variant_id: UUID | None,
    ):
        query = query.where(
            InventoryTransaction.tenant_id == tenant_id,
            InventoryTransaction.product_id == product_id,
            InventoryTransaction.warehouse_id == warehouse_id,
        )
        if variant_id is None:
            return query.where(InventoryTransaction.variant_id.is_(None))
        return query.where(InventoryTransaction.variant_id == variant_id)

    def list_transactions(
        self,
        tenant_id: UUID,
        product_id: UUID | None = None,
        warehouse_id: UUID | None = None,
        transaction_type: InventoryTransactionType | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page[TransactionInfo]:
        """Page through ledger entries, newest first."""
        page, page_size = self._paging(page, page_size)

        query = select(InventoryTransaction).where(
            InventoryTransaction.tenant_id == tenant_id
        )
        if product_id is not None:
            query = query.where(InventoryTransaction.product_id == product_id)
        if warehouse_id is not None:
            query = query.where(InventoryTransaction.warehouse_id == warehouse_id)
        if transaction_type is not None:
            query = query.where(
                InventoryTransaction.transaction_type
                == InventoryTransactionType(transaction_type).value
            )
        if date_from is not None:
            query = query.where(InventoryTransaction.created_at >= date_from)
        if date_to is not None:
            query = query.where(InventoryTransaction.created_at <= date_to)

        total = self.session.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()

        rows = self.session.execute(
            query.order_by(InventoryTransaction.sequence.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        ).scalars().all()

        return Page(
            items=tuple(self._to_info(txn) for txn in rows),
            page=page,
            page_size=page_size,
            total=total,
        )

    def transactions_for(self, tenant_id: UUID, reference: DocumentRef) -> list[TransactionInfo]:
        """All entries caused by one document, in recording order."""
        rows = self.session.execute(
            select(InventoryTransaction)
            .where(
                InventoryTransaction.tenant_id == tenant_id,
                InventoryTransaction.reference_type == reference.kind.value,
                InventoryTransaction.reference_id == reference.document_id,
            )
            .order_by(InventoryTransaction.sequence)
        ).scalars().all()
        return [self._to_info(txn) for txn in rows]

    def replay_quantity(
        self,
        tenant_id: UUID,
        product_id: UUID,
        warehouse_id: UUID,
        variant_id: UUID | None = None,
    ) -> int:
        """Sum of signed deltas for one stock level."""
        query = self._stock_filter(
            select(func.coalesce(func.sum(InventoryTransaction.quantity), 0)),
            tenant_id, product_id, warehouse_id, variant_id,
        )
        return int(self.session.execute(query).scalar_one())

    def verify_replay(
        self,
        tenant_id: UUID,
        product_id: UUID,
        warehouse_id: UUID,
        variant_id: UUID | None = None,
    ) -> ReplayCheck:
        """Replay the ledger in sequence order and compare with the stored level."""
        key = make_stock_key(tenant_id, product_id, variant_id, warehouse_id)
        stored = self.session.execute(
            select(StockLevel.quantity).where(StockLevel.stock_key == key)
        ).scalar_one_or_none()

        rows = self.session.execute(
            self._stock_filter(
                select(
                    InventoryTransaction.sequence,
                    InventoryTransaction.quantity,
                    InventoryTransaction.running_balance,
                ),
                tenant_id, product_id, warehouse_id, variant_id,
            ).order_by(InventoryTransaction.sequence)
        ).all()

        balance = 0
        first_bad = None
        for sequence, delta, running_balance in rows:
            balance += delta
            if first_bad is None and running_balance != balance:
                first_bad = sequence

        return ReplayCheck(
            stock_key=key,
            stored_quantity=stored or 0,
            replayed_quantity=balance,
            transaction_count=len(rows),
            first_bad_sequence=first_bad,
        )
