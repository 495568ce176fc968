"""ORM models for the stock kernel."""

from stock_kernel.models.catalog import Customer, Product, ProductVariant, Warehouse
from stock_kernel.models.inventory_transaction import (
    InventoryTransaction,
    InventoryTransactionType,
)
from stock_kernel.models.sale import Sale, SaleItem, SaleStatus
from stock_kernel.models.stock_adjustment import StockAdjustment, StockAdjustmentItem
from stock_kernel.models.stock_level import StockLevel, make_stock_key
from stock_kernel.models.stock_transfer import (
    OPEN_TRANSFER_STATUSES,
    TERMINAL_TRANSFER_STATUSES,
    StockTransfer,
    StockTransferItem,
    StockTransferStatus,
)

__all__ = [
    "Customer",
    "InventoryTransaction",
    "InventoryTransactionType",
    "OPEN_TRANSFER_STATUSES",
    "Product",
    "ProductVariant",
    "Sale",
    "SaleItem",
    "SaleStatus",
    "StockAdjustment",
    "StockAdjustmentItem",
    "StockLevel",
    "StockTransfer",
    "StockTransferItem",
    "StockTransferStatus",
    "TERMINAL_TRANSFER_STATUSES",
    "Warehouse",
    "make_stock_key",
]
