"""
SaleStockDeductor -- immediate stock deduction on sale, restoration on void.

Responsibility:
    On sale creation, writes the Sale header and items and, for every line
    whose product tracks inventory, deducts on-hand quantity and records a
    Sale transaction at cost.  On void, restores exactly what was deducted
    with Return transactions and moves the sale to VOIDED.

Architecture position:
    Kernel > Services.  Invoked through InventoryOperations.deduct_for_sale
    and InventoryOperations.restore_for_void.

Invariants enforced:
    - No reservation phase: the availability check and the deduction are
      a single StockLedger.apply_delta on a locked, version-stamped row, so
      two concurrent sales of the last unit cannot both succeed.
    - Reserved quantity is never touched by sales.
    - Void restores SaleItem.quantity_deducted per line (0 for untracked
      products), so deduct then void returns every stock level to its
      original quantity.
    - Only COMPLETED sales can be voided; VOIDED is terminal.
    - Both entry points take the tenant ledger lock before the sale header
      or any stock level (see SequenceService).

Failure modes:
    - EmptyItemsError / ZeroQuantityError.
    - WarehouseNotFoundError / CustomerNotFoundError / ProductNotFoundError.
    - InsufficientStockError when a tracked line exceeds availability and
      the product disallows negative stock.
    - SaleNotFoundError / SaleStatusError on void.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.references import DocumentRef
from stock_kernel.domain.requests import SaleRequest
from stock_kernel.exceptions import (
    EmptyItemsError,
    SaleNotFoundError,
    SaleStatusError,
    ZeroQuantityError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory_transaction import InventoryTransactionType
from stock_kernel.models.sale import Sale, SaleItem, SaleStatus
from stock_kernel.services.base import BaseService
from stock_kernel.services.catalog_lookup import CatalogLookup
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_ledger import StockLedger
from stock_kernel.services.transaction_recorder import TransactionRecorder

logger = get_logger("services.sale_stock_deductor")

ENTITY = "Sale"


class SaleStockDeductor(BaseService[Sale]):
    """Sale-driven stock deduction and void restoration."""

    def __init__(
        self,
        session: Session,
        ledger: StockLedger,
        recorder: TransactionRecorder,
        clock: Clock | None = None,
        sequences: SequenceService | None = None,
        number_prefix: str = "INV",
    ):
        super().__init__(session, clock)
        self._ledger = ledger
        self._recorder = recorder
        self._catalog = CatalogLookup(session)
        self._sequences = sequences or SequenceService(session)
        self._number_prefix = number_prefix

    def deduct(
        self,
        tenant_id: UUID,
        request: SaleRequest,
        cashier_id: UUID | None = None,
    ) -> Sale:
        """Create the sale and deduct stock for every tracked line."""
        if not request.items:
            raise EmptyItemsError(ENTITY)
        for line in request.items:
            if line.quantity <= 0:
                raise ZeroQuantityError(ENTITY, str(line.product_id), line.quantity)

        self._sequences.lock_ledger(tenant_id)
        warehouse = self._catalog.warehouse(tenant_id, request.warehouse_id)
        if request.customer_id is not None:
            self._catalog.customer(tenant_id, request.customer_id)

        now = self._clock.now()
        sale = Sale(
            id=uuid4(),
            tenant_id=tenant_id,
            invoice_number=self._sequences.next_document_number(
                tenant_id, self._number_prefix, now
            ),
            warehouse_id=warehouse.id,
            customer_id=request.customer_id,
            cashier_id=cashier_id,
            status=SaleStatus.COMPLETED,
            sale_date=now,
            notes=request.notes,
            created_at=now,
            created_by_id=cashier_id,
        )
        reference = DocumentRef.sale(sale.id)

        for line_number, line in enumerate(request.items, start=1):
            product = self._catalog.product(tenant_id, line.product_id)
            self._catalog.variant(product, line.variant_id)
            unit_cost = product.cost_price if product.cost_price is not None else Decimal("0")

            deducted = 0
            if product.track_inventory:
                level = self._ledger.get_or_create(
                    tenant_id, product.id, line.variant_id, warehouse.id
                )
                self._ledger.apply_delta(
                    level,
                    -line.quantity,
                    0,
                    product.allow_negative_stock,
                    product=product,
                    entity_type=ENTITY,
                )
                self._recorder.record(
                    tenant_id,
                    level,
                    InventoryTransactionType.SALE,
                    -line.quantity,
                    reference,
                    unit_cost=unit_cost,
                    notes=f"Sale: {sale.invoice_number}",
                    actor_id=cashier_id,
                )
                deducted = line.quantity

            sale.items.append(
                SaleItem(
                    line_number=line_number,
                    product_id=product.id,
                    variant_id=line.variant_id,
                    product_name=product.name,
                    sku=product.sku,
                    quantity=line.quantity,
                    unit_cost=unit_cost,
                    quantity_deducted=deducted,
                    created_at=now,
                    created_by_id=cashier_id,
                )
            )

        self.session.add(sale)
        self.session.flush()
        logger.info(
            "sale_stock_deducted",
            extra={
                "sale_id": str(sale.id),
                "invoice_number": sale.invoice_number,
                "warehouse_id": str(warehouse.id),
                "item_count": len(sale.items),
                "tracked_lines": sum(1 for i in sale.items if i.quantity_deducted),
            },
        )
        return sale

    def restore_for_void(
        self,
        tenant_id: UUID,
        sale_id: UUID,
        reason: str | None = None,
        actor_id: UUID | None = None,
    ) -> Sale:
        """Return deducted stock and mark the sale VOIDED."""
        self._sequences.lock_ledger(tenant_id)
        sale = self.session.execute(
            select(Sale)
            .where(Sale.id == sale_id, Sale.tenant_id == tenant_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if sale is None:
            raise SaleNotFoundError(str(sale_id))

        status = SaleStatus(sale.status)
        if status != SaleStatus.COMPLETED:
            logger.warning(
                "sale_void_rejected",
                extra={"sale_id": str(sale.id), "status": status.value},
            )
            raise SaleStatusError(str(sale.id), status.value)

        note = f"Void sale: {sale.invoice_number}"
        if reason:
            note = f"{note}. {reason}"
        reference = DocumentRef.sale(sale.id)

        for item in sale.items:
            if item.quantity_deducted <= 0:
                continue
            product = self._catalog.find_product(tenant_id, item.product_id)
            level = self._ledger.get_or_create(
                tenant_id, item.product_id, item.variant_id, sale.warehouse_id
            )
            self._ledger.apply_delta(
                level, item.quantity_deducted, 0, True, product=product, entity_type=ENTITY
            )
            self._recorder.record(
                tenant_id,
                level,
                InventoryTransactionType.RETURN,
                item.quantity_deducted,
                reference,
                unit_cost=item.unit_cost,
                notes=note,
                actor_id=actor_id,
            )

        now = self._clock.now()
        void_line = f"[VOIDED] {now:%Y-%m-%d %H:%M:%S}"
        if reason:
            void_line = f"{void_line}: {reason}"
        sale.internal_notes = (
            f"{sale.internal_notes}\n{void_line}" if sale.internal_notes else void_line
        )
        sale.status = SaleStatus.VOIDED
        sale.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "sale_voided",
            extra={
                "sale_id": str(sale.id),
                "invoice_number": sale.invoice_number,
                "reason": reason,
            },
        )
        return sale
