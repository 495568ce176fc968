"""
Sale deduction and void restoration tests.

Tests cover:
- Immediate deduction for tracked products, none for untracked ones
- Sale transactions at cost
- Void restores exactly what was deducted
- Status guards on void
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.requests import SaleLine, SaleRequest, TransferLine, TransferRequest
from stock_kernel.domain.results import OperationStatus
from stock_kernel.models.inventory_transaction import InventoryTransactionType
from stock_kernel.models.sale import Sale, SaleStatus


def _sale(warehouse, *lines, customer=None, notes=None):
    return SaleRequest(
        warehouse_id=warehouse.id,
        items=tuple(lines),
        customer_id=customer.id if customer else None,
        notes=notes,
    )


@pytest.fixture
def stocked(make_product, warehouse_a, seed_stock):
    product = make_product("Widget", cost_price=Decimal("5.00"))
    seed_stock(product, warehouse_a, 40)
    return product


class TestDeduct:

    def test_deducts_quantity(self, ops, level_of, stocked, warehouse_a):
        result = ops.deduct_for_sale(_sale(warehouse_a, SaleLine(stocked.id, 10)))
        assert result.is_success
        assert result.document.number == "INV-20240101-0001"
        assert result.document.status == "completed"
        assert level_of(stocked, warehouse_a) == (30, 0)

    def test_sale_transaction_at_cost(self, ops, transaction_selector, tenant_id, stocked, warehouse_a):
        result = ops.deduct_for_sale(_sale(warehouse_a, SaleLine(stocked.id, 10)))
        [txn] = transaction_selector.transactions_for(tenant_id, result.document.reference)

        assert txn.transaction_type == InventoryTransactionType.SALE
        assert txn.quantity == -10
        assert txn.unit_cost == Decimal("5.00")
        assert txn.total_cost == Decimal("50.00")
        assert txn.running_balance == 30
        assert txn.notes == "Sale: INV-20240101-0001"

    def test_snapshot_items(self, ops, session, stocked, warehouse_a, make_customer, test_actor_id):
        customer = make_customer()
        result = ops.deduct_for_sale(_sale(warehouse_a, SaleLine(stocked.id, 2), customer=customer))
        sale = session.get(Sale, result.document.document_id)

        assert sale.customer_id == customer.id
        assert sale.cashier_id == test_actor_id
        [item] = sale.items
        assert (item.product_name, item.quantity, item.quantity_deducted) == ("Widget", 2, 2)
        assert item.sku == stocked.sku

    def test_untracked_product_not_deducted(self, ops, transaction_selector, tenant_id, level_of, make_product, warehouse_a, session):
        service = make_product("Gift wrap", track_inventory=False)
        result = ops.deduct_for_sale(_sale(warehouse_a, SaleLine(service.id, 3)))

        assert result.is_success
        assert level_of(service, warehouse_a) == (0, 0)
        assert transaction_selector.transactions_for(tenant_id, result.document.reference) == []
        [item] = session.get(Sale, result.document.document_id).items
        assert item.quantity_deducted == 0

    def test_insufficient_stock_aborts_whole_sale(self, ops, level_of, stocked, make_product, warehouse_a, seed_stock):
        other = make_product("Gadget")
        seed_stock(other, warehouse_a, 1)
        result = ops.deduct_for_sale(
            _sale(warehouse_a, SaleLine(stocked.id, 5), SaleLine(other.id, 2))
        )

        assert result.status == OperationStatus.INSUFFICIENT_STOCK
        assert result.error_code == "Sale.InsufficientStock"
        assert result.message == "Insufficient stock for product 'Gadget'. Available: 1, Requested: 2"
        assert level_of(stocked, warehouse_a) == (40, 0)
        assert level_of(other, warehouse_a) == (1, 0)

    def test_reserved_stock_is_not_sellable(self, ops, stocked, warehouse_a, warehouse_b):
        ops.initiate_transfer(
            TransferRequest(warehouse_a.id, warehouse_b.id, (TransferLine(stocked.id, 35),))
        )
        result = ops.deduct_for_sale(_sale(warehouse_a, SaleLine(stocked.id, 6)))
        assert result.status == OperationStatus.INSUFFICIENT_STOCK
        assert "Available: 5" in result.message

    def test_negative_stock_product_can_oversell(self, ops, level_of, make_product, warehouse_a):
        product = make_product(allow_negative_stock=True)
        assert ops.deduct_for_sale(_sale(warehouse_a, SaleLine(product.id, 2))).is_success
        assert level_of(product, warehouse_a) == (-2, 0)

    def test_empty_sale(self, ops, warehouse_a):
        result = ops.deduct_for_sale(_sale(warehouse_a))
        assert result.status == OperationStatus.VALIDATION_ERROR
        assert result.error_code == "Sale.Validation"

    def test_unknown_customer(self, ops, stocked, warehouse_a):
        result = ops.deduct_for_sale(
            SaleRequest(warehouse_a.id, (SaleLine(stocked.id, 1),), customer_id=uuid4())
        )
        assert result.status == OperationStatus.NOT_FOUND
        assert result.error_code == "Customer.NotFound"


class TestVoid:

    @pytest.fixture
    def sale_doc(self, ops, stocked, make_product, warehouse_a, seed_stock):
        gadget = make_product("Gadget", cost_price=Decimal("2.00"))
        seed_stock(gadget, warehouse_a, 10)
        untracked = make_product("Service", track_inventory=False)
        result = ops.deduct_for_sale(
            _sale(
                warehouse_a,
                SaleLine(stocked.id, 10),
                SaleLine(gadget.id, 4),
                SaleLine(untracked.id, 1),
            )
        )
        assert result.is_success
        return result.document

    def test_restores_every_line(self, ops, sale_doc, level_of, stocked, warehouse_a, make_product):
        result = ops.restore_for_void(sale_doc.document_id, "customer changed mind")
        assert result.is_success
        assert result.document.status == "voided"
        assert level_of(stocked, warehouse_a) == (40, 0)

    def test_return_transactions(self, ops, sale_doc, transaction_selector, tenant_id):
        ops.restore_for_void(sale_doc.document_id, "damaged box")
        returns = [
            t for t in transaction_selector.transactions_for(tenant_id, sale_doc.reference)
            if t.transaction_type == InventoryTransactionType.RETURN
        ]
        assert sorted(t.quantity for t in returns) == [4, 10]
        assert {t.notes for t in returns} == {f"Void sale: {sale_doc.number}. damaged box"}
        widget_return = next(t for t in returns if t.quantity == 10)
        assert widget_return.unit_cost == Decimal("5.00")
        assert widget_return.running_balance == 40

    def test_void_note_and_status(self, ops, sale_doc, session):
        ops.restore_for_void(sale_doc.document_id, "damaged box")
        sale = session.get(Sale, sale_doc.document_id)
        assert SaleStatus(sale.status) == SaleStatus.VOIDED
        assert sale.internal_notes == "[VOIDED] 2024-01-01 12:00:00: damaged box"

    def test_void_without_reason(self, ops, sale_doc, session, transaction_selector, tenant_id):
        ops.restore_for_void(sale_doc.document_id)
        sale = session.get(Sale, sale_doc.document_id)
        assert sale.internal_notes == "[VOIDED] 2024-01-01 12:00:00"
        notes = {t.notes for t in transaction_selector.transactions_for(tenant_id, sale_doc.reference)
                 if t.quantity > 0}
        assert notes == {f"Void sale: {sale_doc.number}"}

    def test_second_void_rejected(self, ops, sale_doc, level_of, stocked, warehouse_a):
        ops.restore_for_void(sale_doc.document_id)
        result = ops.restore_for_void(sale_doc.document_id)
        assert result.status == OperationStatus.INVALID_STATUS
        assert result.error_code == "Sale.AlreadyVoided"
        assert result.message == "This sale has already been voided."
        assert level_of(stocked, warehouse_a) == (40, 0)

    @pytest.mark.parametrize(
        "status, code",
        [(SaleStatus.RETURNED, "Sale.AlreadyReturned"), (SaleStatus.HELD, "Sale.InvalidStatus")],
    )
    def test_non_completed_rejected(self, ops, sale_doc, session, status, code):
        sale = session.get(Sale, sale_doc.document_id)
        sale.status = status
        session.commit()

        result = ops.restore_for_void(sale_doc.document_id)
        assert result.status == OperationStatus.INVALID_STATUS
        assert result.error_code == code

    def test_unknown_sale(self, ops):
        result = ops.restore_for_void(uuid4())
        assert result.status == OperationStatus.NOT_FOUND
        assert result.error_code == "Sale.NotFound"
