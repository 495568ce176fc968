"""Read-only query selectors."""

from stock_kernel.selectors.base import BaseSelector, Page
from stock_kernel.selectors.stock_selector import StockLevelInfo, StockSelector
from stock_kernel.selectors.transaction_selector import (
    ReplayCheck,
    TransactionInfo,
    TransactionSelector,
)

__all__ = [
    "BaseSelector",
    "Page",
    "ReplayCheck",
    "StockLevelInfo",
    "StockSelector",
    "TransactionInfo",
    "TransactionSelector",
]
