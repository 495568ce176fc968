"""
Pure domain layer.

Request DTOs, tagged results, document references, the clock abstraction
and the tenant/identity collaborator protocols.  Nothing here touches the
ORM or the database.
"""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.context import (
    IdentityProvider,
    StaticIdentityProvider,
    StaticTenantProvider,
    TenantProvider,
)
from stock_kernel.domain.references import DocumentRef, ReferenceKind
from stock_kernel.domain.requests import (
    AdjustmentLine,
    AdjustmentReason,
    AdjustmentRequest,
    SaleLine,
    SaleRequest,
    TransferLine,
    TransferRequest,
)
from stock_kernel.domain.results import (
    OperationDocument,
    OperationResult,
    OperationStatus,
)

__all__ = [
    "AdjustmentLine",
    "AdjustmentReason",
    "AdjustmentRequest",
    "Clock",
    "DeterministicClock",
    "DocumentRef",
    "IdentityProvider",
    "OperationDocument",
    "OperationResult",
    "OperationStatus",
    "ReferenceKind",
    "SaleLine",
    "SaleRequest",
    "StaticIdentityProvider",
    "StaticTenantProvider",
    "SystemClock",
    "TenantProvider",
    "TransferLine",
    "TransferRequest",
]
