"""
Settings schema (``stock_config.schema``).

Frozen dataclasses describing the runtime knobs of the stock ledger.  All
validation happens in ``__post_init__`` and raises ``ValueError``; there are
no silent corrections.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_PREFIX_RE = re.compile(r"^[A-Z][A-Z0-9]{1,9}$")


@dataclass(frozen=True)
class NumberPrefixes:
    """Document number prefixes: ``{PREFIX}-{yyyyMMdd}-{NNNN}``."""

    adjustment: str = "ADJ"
    transfer: str = "TRF"
    sale: str = "INV"

    def __post_init__(self) -> None:
        values = (self.adjustment, self.transfer, self.sale)
        for value in values:
            if not _PREFIX_RE.match(value):
                raise ValueError(
                    f"number prefix must be 2-10 uppercase alphanumerics, got '{value}'"
                )
        if len(set(values)) != len(values):
            raise ValueError(f"number prefixes must be distinct, got {values}")


@dataclass(frozen=True)
class LedgerSettings:
    """
    Runtime settings for the stock ledger.

    max_retries: how many times InventoryOperations re-runs a unit of work
        that lost an optimistic-lock race (0 disables retry).
    page_size_default / page_size_max: selector paging bounds.
    low_stock_alerts: emit ``low_stock_alert`` warnings from StockLedger.
    database_url: optional engine URL for callers that build their own engine.
    """

    max_retries: int = 3
    page_size_default: int = 50
    page_size_max: int = 500
    low_stock_alerts: bool = True
    number_prefixes: NumberPrefixes = field(default_factory=NumberPrefixes)
    database_url: str | None = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries cannot be negative, got {self.max_retries}")
        if self.page_size_default < 1:
            raise ValueError(
                f"page_size_default must be positive, got {self.page_size_default}"
            )
        if self.page_size_max < self.page_size_default:
            raise ValueError(
                f"page_size_max ({self.page_size_max}) must be >= "
                f"page_size_default ({self.page_size_default})"
            )

    def clamp_page_size(self, page_size: int | None) -> int:
        """Resolve a requested page size against the configured bounds."""
        if page_size is None or page_size < 1:
            return self.page_size_default
        return min(page_size, self.page_size_max)
