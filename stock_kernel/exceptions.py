"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock ledgers must fail precisely. A caller that has to parse "Insufficient
stock" out of a message string cannot distinguish a missing product from an
over-reservation, and neither can an API layer that maps failures onto HTTP
status codes.

Every exception in this module therefore:
  1. Has a TYPED class (catch by type, not message)
  2. Has a class-level CODE (machine-readable, category level)
  3. Has an instance-level DETAIL_CODE qualified by entity
     (e.g. "Product.NotFound", "StockTransfer.InsufficientStock")
  4. Carries structured DATA as attributes

Example:
    try:
        processor.adjust(tenant_id, request)
    except InsufficientStockError as e:
        api_response(code=e.detail_code, available=e.available)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from InventoryKernelError:

    InventoryKernelError (base)
    |
    +-- NotFoundError
    |   +-- ProductNotFoundError
    |   +-- VariantNotFoundError
    |   +-- WarehouseNotFoundError
    |   +-- CustomerNotFoundError
    |   +-- TransferNotFoundError
    |   +-- SaleNotFoundError
    |
    +-- ValidationError
    |   +-- EmptyItemsError
    |   +-- ZeroQuantityError
    |   +-- InvalidAdjustmentReasonError
    |   +-- SameWarehouseError
    |   +-- EmptyTransferError
    |   +-- InsufficientStockError
    |
    +-- InvalidStatusError
    |   +-- TransferStatusError
    |   +-- SaleStatusError
    |
    +-- UnauthorizedError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | NOT_FOUND                   | Product/variant/warehouse/customer,
                |                             | transfer or sale missing for tenant
----------------|-----------------------------|-----------------------------------------
Validation      | EMPTY_ITEMS                 | Request carries no lines
                | ZERO_QUANTITY               | Adjustment line of 0, or non-positive
                |                             | transfer/sale quantity
                | INVALID_ADJUSTMENT_REASON   | Adjustment reason is not a known code
                | SAME_WAREHOUSE              | Transfer source == destination
                | EMPTY_TRANSFER              | Completing a transfer with no items
                | INSUFFICIENT_STOCK          | Delta would break availability
----------------|-----------------------------|-----------------------------------------
Status          | INVALID_STATUS              | Transfer/sale not in a state that
                |                             | allows the requested transition
----------------|-----------------------------|-----------------------------------------
Tenant          | UNAUTHORIZED                | No resolvable tenant context
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Stock level modified concurrently
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying an append-only record

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Business failures (not found, validation, status, unauthorized) are
   converted into tagged OperationResult values by InventoryOperations.
   Only ConcurrencyError (after retries are exhausted), ImmutabilityError
   and infrastructure errors propagate to callers.

2. InsufficientStockError is a ValidationError so a generic validation
   handler also covers it, while callers that care can catch it by type.
"""


class InventoryKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"

    @property
    def detail_code(self) -> str:
        """Entity-qualified code; subclasses override where they know the entity."""
        return self.code


# Not-found exceptions


class NotFoundError(InventoryKernelError):
    """A referenced entity does not exist within the current tenant."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with ID '{entity_id}' was not found.")

    @property
    def detail_code(self) -> str:
        return f"{self.entity_type}.NotFound"


class ProductNotFoundError(NotFoundError):
    """Product does not exist for the tenant."""

    def __init__(self, product_id: str):
        super().__init__("Product", product_id)


class VariantNotFoundError(NotFoundError):
    """Product variant does not exist or belongs to another product."""

    def __init__(self, variant_id: str):
        super().__init__("ProductVariant", variant_id)


class WarehouseNotFoundError(NotFoundError):
    """Warehouse does not exist for the tenant."""

    def __init__(self, warehouse_id: str):
        super().__init__("Warehouse", warehouse_id)


class CustomerNotFoundError(NotFoundError):
    """Customer does not exist for the tenant."""

    def __init__(self, customer_id: str):
        super().__init__("Customer", customer_id)


class TransferNotFoundError(NotFoundError):
    """Stock transfer does not exist for the tenant."""

    def __init__(self, transfer_id: str):
        super().__init__("StockTransfer", transfer_id)


class SaleNotFoundError(NotFoundError):
    """Sale does not exist for the tenant."""

    def __init__(self, sale_id: str):
        super().__init__("Sale", sale_id)


# Validation exceptions


class ValidationError(InventoryKernelError):
    """Base exception for rejected request shapes and quantities."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, entity_type: str, message: str):
        self.entity_type = entity_type
        super().__init__(message)

    @property
    def detail_code(self) -> str:
        return f"{self.entity_type}.Validation"


class EmptyItemsError(ValidationError):
    """Request carries no lines."""

    code: str = "EMPTY_ITEMS"

    def __init__(self, entity_type: str):
        super().__init__(entity_type, "At least one item is required.")


class ZeroQuantityError(ValidationError):
    """A line quantity is zero (adjustments) or not positive (transfers, sales)."""

    code: str = "ZERO_QUANTITY"

    def __init__(self, entity_type: str, product_id: str, quantity: int):
        self.product_id = product_id
        self.quantity = quantity
        if entity_type == "StockAdjustment":
            message = "Adjustment quantity cannot be zero."
        else:
            message = "Quantity must be greater than zero."
        super().__init__(entity_type, message)


class InvalidAdjustmentReasonError(ValidationError):
    """Adjustment reason is not one of the AdjustmentReason codes."""

    code: str = "INVALID_ADJUSTMENT_REASON"

    def __init__(self, reason: object):
        self.reason = reason
        super().__init__("StockAdjustment", "Invalid adjustment reason.")


class SameWarehouseError(ValidationError):
    """Transfer source and destination are the same warehouse."""

    code: str = "SAME_WAREHOUSE"

    def __init__(self, warehouse_id: str):
        self.warehouse_id = warehouse_id
        super().__init__(
            "StockTransfer",
            "Source and destination warehouses must be different.",
        )


class EmptyTransferError(ValidationError):
    """Transfer being completed has no items."""

    code: str = "EMPTY_TRANSFER"

    def __init__(self, transfer_id: str):
        self.transfer_id = transfer_id
        super().__init__("StockTransfer", "Transfer has no items.")


class InsufficientStockError(ValidationError):
    """
    Applying a delta would drive on-hand or available stock below zero,
    or push the reservation above on-hand quantity.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_name: str,
        available: int,
        requested: int,
        entity_type: str = "StockLevel",
        label: str = "Requested",
    ):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            entity_type,
            f"Insufficient stock for product '{product_name}'. "
            f"Available: {available}, {label}: {requested}",
        )

    @property
    def detail_code(self) -> str:
        return f"{self.entity_type}.InsufficientStock"


# Status exceptions


class InvalidStatusError(InventoryKernelError):
    """Document is not in a state that permits the requested transition."""

    code: str = "INVALID_STATUS"

    def __init__(self, entity_type: str, entity_id: str, status: str, message: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.status = status
        super().__init__(message)

    @property
    def detail_code(self) -> str:
        return f"{self.entity_type}.InvalidStatus"


class TransferStatusError(InvalidStatusError):
    """Transfer transition not allowed from its current status."""

    def __init__(self, transfer_id: str, status: str, action: str = "complete"):
        self.action = action
        super().__init__(
            "StockTransfer",
            transfer_id,
            status,
            f"Cannot {action} transfer with status '{status}'.",
        )


class SaleStatusError(InvalidStatusError):
    """Sale cannot be voided from its current status."""

    _MESSAGES = {
        "voided": ("AlreadyVoided", "This sale has already been voided."),
        "returned": ("AlreadyReturned", "Cannot void a fully returned sale."),
    }

    def __init__(self, sale_id: str, status: str):
        reason, message = self._MESSAGES.get(
            status, ("InvalidStatus", f"Cannot void sale with status '{status}'.")
        )
        self.reason = reason
        super().__init__("Sale", sale_id, status, message)

    @property
    def detail_code(self) -> str:
        return f"Sale.{self.reason}"


# Tenant exceptions


class UnauthorizedError(InventoryKernelError):
    """No tenant context could be resolved for the call."""

    code: str = "UNAUTHORIZED"

    def __init__(self, message: str = "Tenant context is required."):
        super().__init__(message)

    @property
    def detail_code(self) -> str:
        return "Error.Unauthorized"


# Concurrency exceptions


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Inventory transactions and adjustments are append-only; completed or
    cancelled transfers and voided sales are terminal.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
