"""
Request DTOs for the stock-mutating operations.

Frozen dataclasses, no ORM, no I/O.  Shape and quantity rules (non-empty
items, non-zero adjustment, positive transfer/sale quantity) are checked
by the processors so they surface as typed ValidationError results rather
than constructor failures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID


class AdjustmentReason(str, Enum):
    """Why a manual adjustment was made."""

    DAMAGED = "damaged"
    EXPIRED = "expired"
    LOST = "lost"
    FOUND = "found"
    RETURNED = "returned"
    CORRECTION = "correction"
    STOCK_TAKE = "stock_take"
    OTHER = "other"


@dataclass(frozen=True)
class AdjustmentLine:
    """One signed quantity change for a product (optionally a variant)."""

    product_id: UUID
    quantity_adjusted: int
    variant_id: UUID | None = None
    notes: str | None = None


@dataclass(frozen=True)
class AdjustmentRequest:
    warehouse_id: UUID
    reason: AdjustmentReason
    items: tuple[AdjustmentLine, ...] = field(default_factory=tuple)
    notes: str | None = None
    adjustment_date: datetime | None = None


@dataclass(frozen=True)
class TransferLine:
    """Quantity of a product (optionally a variant) to move."""

    product_id: UUID
    quantity: int
    variant_id: UUID | None = None
    notes: str | None = None


@dataclass(frozen=True)
class TransferRequest:
    from_warehouse_id: UUID
    to_warehouse_id: UUID
    items: tuple[TransferLine, ...] = field(default_factory=tuple)
    notes: str | None = None


@dataclass(frozen=True)
class SaleLine:
    """Quantity of a product (optionally a variant) sold."""

    product_id: UUID
    quantity: int
    variant_id: UUID | None = None


@dataclass(frozen=True)
class SaleRequest:
    warehouse_id: UUID
    items: tuple[SaleLine, ...] = field(default_factory=tuple)
    customer_id: UUID | None = None
    notes: str | None = None
