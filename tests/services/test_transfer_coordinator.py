"""
Stock transfer tests.

Tests cover:
- Initiation reserves at the source without moving stock
- Dispatch, completion and cancellation transitions
- Terminal states reject further transitions with no mutation
- Request validation
"""

from uuid import uuid4

import pytest

from stock_kernel.domain.requests import TransferLine, TransferRequest
from stock_kernel.domain.results import OperationStatus
from stock_kernel.models.inventory_transaction import InventoryTransactionType
from stock_kernel.models.stock_transfer import StockTransfer, StockTransferStatus


def _request(source, destination, *lines, notes=None):
    return TransferRequest(
        from_warehouse_id=source.id,
        to_warehouse_id=destination.id,
        items=tuple(lines),
        notes=notes,
    )


@pytest.fixture
def stocked(product, warehouse_a, seed_stock):
    seed_stock(product, warehouse_a, 50)
    return product


@pytest.fixture
def pending(ops, stocked, warehouse_a, warehouse_b):
    result = ops.initiate_transfer(_request(warehouse_a, warehouse_b, TransferLine(stocked.id, 20)))
    assert result.is_success, result.message
    return result.document


class TestInitiate:

    def test_reserves_without_moving(self, pending, level_of, stocked, warehouse_a, warehouse_b):
        assert pending.status == "pending"
        assert pending.number == "TRF-20240101-0001"
        assert level_of(stocked, warehouse_a) == (50, 20)
        assert level_of(stocked, warehouse_b) == (0, 0)

    def test_no_transactions_written(self, pending, transaction_selector, tenant_id):
        assert transaction_selector.transactions_for(tenant_id, pending.reference) == []

    def test_header_fields(self, pending, session, warehouse_a, warehouse_b, test_actor_id, deterministic_clock):
        transfer = session.get(StockTransfer, pending.document_id)
        assert transfer.from_warehouse_id == warehouse_a.id
        assert transfer.to_warehouse_id == warehouse_b.id
        assert transfer.transferred_by == test_actor_id
        assert transfer.received_by is None
        assert [i.quantity for i in transfer.items] == [20]

    def test_insufficient_available(self, ops, pending, level_of, stocked, warehouse_a, warehouse_b):
        result = ops.initiate_transfer(_request(warehouse_a, warehouse_b, TransferLine(stocked.id, 31)))
        assert result.status == OperationStatus.INSUFFICIENT_STOCK
        assert result.error_code == "StockTransfer.InsufficientStock"
        assert "Available: 30, Requested: 31" in result.message
        assert level_of(stocked, warehouse_a) == (50, 20)

    def test_negative_stock_flag_does_not_help(self, ops, make_product, warehouse_a, warehouse_b):
        product = make_product(allow_negative_stock=True)
        result = ops.initiate_transfer(_request(warehouse_a, warehouse_b, TransferLine(product.id, 1)))
        assert result.status == OperationStatus.INSUFFICIENT_STOCK
        assert "Available: 0" in result.message

    def test_one_short_line_aborts_all(self, ops, level_of, stocked, make_product, warehouse_a, warehouse_b):
        empty = make_product("Empty")
        result = ops.initiate_transfer(
            _request(warehouse_a, warehouse_b, TransferLine(stocked.id, 5), TransferLine(empty.id, 1))
        )
        assert result.status == OperationStatus.INSUFFICIENT_STOCK
        assert level_of(stocked, warehouse_a) == (50, 0)

    def test_same_warehouse(self, ops, stocked, warehouse_a):
        result = ops.initiate_transfer(_request(warehouse_a, warehouse_a, TransferLine(stocked.id, 1)))
        assert result.status == OperationStatus.VALIDATION_ERROR
        assert result.message == "Source and destination warehouses must be different."

    def test_empty_items(self, ops, warehouse_a, warehouse_b):
        result = ops.initiate_transfer(_request(warehouse_a, warehouse_b))
        assert result.status == OperationStatus.VALIDATION_ERROR

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_quantity(self, ops, stocked, warehouse_a, warehouse_b, quantity):
        result = ops.initiate_transfer(_request(warehouse_a, warehouse_b, TransferLine(stocked.id, quantity)))
        assert result.status == OperationStatus.VALIDATION_ERROR
        assert result.message == "Quantity must be greater than zero."

    def test_missing_destination(self, ops, stocked, warehouse_a):
        result = ops.initiate_transfer(
            TransferRequest(warehouse_a.id, uuid4(), (TransferLine(stocked.id, 1),))
        )
        assert result.status == OperationStatus.NOT_FOUND
        assert result.error_code == "Warehouse.NotFound"


class TestComplete:

    def test_moves_stock(self, ops, pending, level_of, stocked, warehouse_a, warehouse_b):
        result = ops.complete_transfer(pending.document_id)
        assert result.is_success
        assert result.document.status == "completed"
        assert level_of(stocked, warehouse_a) == (30, 0)
        assert level_of(stocked, warehouse_b) == (20, 0)

    def test_two_transactions_reference_transfer(self, ops, pending, transaction_selector, tenant_id, warehouse_a, warehouse_b):
        ops.complete_transfer(pending.document_id)
        txns = transaction_selector.transactions_for(tenant_id, pending.reference)

        assert len(txns) == 2
        outgoing, incoming = txns
        assert {t.transaction_type for t in txns} == {InventoryTransactionType.TRANSFER}
        assert (outgoing.warehouse_id, outgoing.quantity, outgoing.running_balance) == (warehouse_a.id, -20, 30)
        assert (incoming.warehouse_id, incoming.quantity, incoming.running_balance) == (warehouse_b.id, 20, 20)
        assert outgoing.notes == "Transfer out to Back Room"
        assert incoming.notes == "Transfer in from Main Store"

    def test_stamps_receipt(self, ops, pending, session, test_actor_id):
        ops.complete_transfer(pending.document_id)
        transfer = session.get(StockTransfer, pending.document_id)
        assert transfer.received_by == test_actor_id
        assert transfer.received_date is not None
        assert [i.received_quantity for i in transfer.items] == [20]

    def test_from_in_transit(self, ops, pending, level_of, stocked, warehouse_b):
        dispatched = ops.dispatch_transfer(pending.document_id)
        assert dispatched.document.status == "in_transit"
        assert ops.complete_transfer(pending.document_id).is_success
        assert level_of(stocked, warehouse_b) == (20, 0)

    def test_second_completion_rejected_without_mutation(
        self, ops, pending, session, tenant_id, transaction_selector, level_of, stocked, warehouse_a, warehouse_b,
    ):
        ops.complete_transfer(pending.document_id)
        before_txns = transaction_selector.list_transactions(tenant_id).total

        result = ops.complete_transfer(pending.document_id)

        assert result.status == OperationStatus.INVALID_STATUS
        assert result.error_code == "StockTransfer.InvalidStatus"
        assert result.message == "Cannot complete transfer with status 'completed'."
        assert level_of(stocked, warehouse_a) == (30, 0)
        assert level_of(stocked, warehouse_b) == (20, 0)
        assert transaction_selector.list_transactions(tenant_id).total == before_txns

    def test_unknown_transfer(self, ops):
        result = ops.complete_transfer(uuid4())
        assert result.status == OperationStatus.NOT_FOUND
        assert result.error_code == "StockTransfer.NotFound"

    def test_other_tenant_cannot_complete(self, make_ops, other_tenant_id, pending):
        result = make_ops(other_tenant_id).complete_transfer(pending.document_id)
        assert result.status == OperationStatus.NOT_FOUND


class TestDispatch:

    def test_only_from_pending(self, ops, pending):
        ops.dispatch_transfer(pending.document_id)
        result = ops.dispatch_transfer(pending.document_id)
        assert result.status == OperationStatus.INVALID_STATUS
        assert result.message == "Cannot dispatch transfer with status 'in_transit'."

    def test_keeps_reservation(self, ops, pending, level_of, stocked, warehouse_a):
        ops.dispatch_transfer(pending.document_id)
        assert level_of(stocked, warehouse_a) == (50, 20)


class TestCancel:

    def test_releases_reservation(self, ops, pending, level_of, stocked, warehouse_a, warehouse_b):
        result = ops.cancel_transfer(pending.document_id, "wrong item")
        assert result.is_success
        assert result.document.status == "cancelled"
        assert level_of(stocked, warehouse_a) == (50, 0)
        assert level_of(stocked, warehouse_b) == (0, 0)

    def test_appends_note(self, ops, pending, session):
        ops.cancel_transfer(pending.document_id, "wrong item")
        transfer = session.get(StockTransfer, pending.document_id)
        assert transfer.notes == "[CANCELLED] 2024-01-01 12:00:00: wrong item"

    def test_from_in_transit(self, ops, pending, level_of, stocked, warehouse_a):
        ops.dispatch_transfer(pending.document_id)
        assert ops.cancel_transfer(pending.document_id).is_success
        assert level_of(stocked, warehouse_a) == (50, 0)

    def test_cancelled_cannot_complete(self, ops, pending, level_of, stocked, warehouse_b):
        ops.cancel_transfer(pending.document_id)
        result = ops.complete_transfer(pending.document_id)
        assert result.status == OperationStatus.INVALID_STATUS
        assert level_of(stocked, warehouse_b) == (0, 0)

    def test_completed_cannot_cancel(self, ops, pending, session):
        ops.complete_transfer(pending.document_id)
        result = ops.cancel_transfer(pending.document_id)
        assert result.status == OperationStatus.INVALID_STATUS
        transfer = session.get(StockTransfer, pending.document_id)
        assert StockTransferStatus(transfer.status) == StockTransferStatus.COMPLETED
