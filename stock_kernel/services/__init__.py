"""
Kernel services -- the write side of the stock ledger.

Only ``InventoryOperations`` is meant for callers.  The remaining services
flush but never commit; the facade owns the unit of work.
"""

from stock_kernel.services.adjustment_processor import AdjustmentProcessor
from stock_kernel.services.catalog_lookup import CatalogLookup
from stock_kernel.services.inventory_operations import InventoryOperations
from stock_kernel.services.sale_stock_deductor import SaleStockDeductor
from stock_kernel.services.sequence_service import SequenceCounter, SequenceService
from stock_kernel.services.stock_ledger import StockLedger
from stock_kernel.services.transaction_recorder import TransactionRecorder
from stock_kernel.services.transfer_coordinator import TransferCoordinator

__all__ = [
    "AdjustmentProcessor",
    "CatalogLookup",
    "InventoryOperations",
    "SaleStockDeductor",
    "SequenceCounter",
    "SequenceService",
    "StockLedger",
    "TransactionRecorder",
    "TransferCoordinator",
]
