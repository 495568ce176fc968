"""OperationResult tagging and exception codes."""

from uuid import uuid4

import pytest

from stock_kernel.domain.references import DocumentRef
from stock_kernel.domain.results import OperationDocument, OperationResult, OperationStatus
from stock_kernel.exceptions import (
    InsufficientStockError,
    ProductNotFoundError,
    SaleStatusError,
    TransferStatusError,
    UnauthorizedError,
    ValidationError,
    VariantNotFoundError,
    ZeroQuantityError,
)


class TestOperationResult:

    def test_success_carries_document(self):
        ref = DocumentRef.adjustment(uuid4())
        document = OperationDocument(ref, "ADJ-20240101-0001", "recorded", 2)
        result = OperationResult.success(document)

        assert result.is_success
        assert result.status == OperationStatus.SUCCESS
        assert result.document.document_id == ref.document_id
        assert result.error_code is None

    def test_failure_carries_code_and_message(self):
        result = OperationResult.failure(
            OperationStatus.NOT_FOUND, "Warehouse.NotFound", "missing"
        )
        assert not result.is_success
        assert result.document is None
        assert result.error_code == "Warehouse.NotFound"
        assert result.message == "missing"


class TestErrorCodes:

    def test_not_found_codes_are_entity_qualified(self):
        assert ProductNotFoundError("p").detail_code == "Product.NotFound"
        assert VariantNotFoundError("v").detail_code == "ProductVariant.NotFound"

    def test_insufficient_stock_message(self):
        exc = InsufficientStockError("Widget", 3, 5, entity_type="Sale")
        assert str(exc) == "Insufficient stock for product 'Widget'. Available: 3, Requested: 5"
        assert exc.detail_code == "Sale.InsufficientStock"

    def test_insufficient_stock_is_validation(self):
        exc = InsufficientStockError("Widget", 0, 1)
        assert exc.code == "INSUFFICIENT_STOCK"
        assert isinstance(exc, ValidationError)

    @pytest.mark.parametrize(
        "entity, message",
        [
            ("StockAdjustment", "Adjustment quantity cannot be zero."),
            ("StockTransfer", "Quantity must be greater than zero."),
            ("Sale", "Quantity must be greater than zero."),
        ],
    )
    def test_zero_quantity_messages(self, entity, message):
        exc = ZeroQuantityError(entity, "p", 0)
        assert str(exc) == message
        assert exc.detail_code == f"{entity}.Validation"

    def test_transfer_status_message(self):
        exc = TransferStatusError("t", "completed")
        assert str(exc) == "Cannot complete transfer with status 'completed'."
        assert exc.detail_code == "StockTransfer.InvalidStatus"

    @pytest.mark.parametrize(
        "status, code",
        [
            ("voided", "Sale.AlreadyVoided"),
            ("returned", "Sale.AlreadyReturned"),
            ("held", "Sale.InvalidStatus"),
        ],
    )
    def test_sale_status_codes(self, status, code):
        assert SaleStatusError("s", status).detail_code == code

    def test_unauthorized_code(self):
        assert UnauthorizedError().detail_code == "Error.Unauthorized"
