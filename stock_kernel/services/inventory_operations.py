"""
InventoryOperations -- the public entry point for every stock mutation.

Responsibility:
    Resolves tenant and acting user once per call, runs the requested
    mutator inside one atomic unit of work, and converts expected business
    failures into tagged ``OperationResult`` values.

Architecture position:
    Kernel > Services -- outermost write-side service.  Callers (HTTP
    handlers, POS sale creation, admin tools) use only this class.

Invariants enforced:
    - Tenant threading: the tenant id comes from the TenantProvider here and
      is passed explicitly to every service call.  A missing tenant fails
      UNAUTHORIZED before anything is read.
    - Atomicity: each attempt runs inside a SAVEPOINT.  On any failure the
      savepoint is rolled back, so no stock level, transaction or document
      from the failed attempt survives.  With auto_commit=True the session
      is committed on success and rolled back on failure.
    - Retry: an OptimisticLockError (stale stock level) re-runs the whole
      unit of work from a fresh read, up to ``max_retries`` times, and then
      propagates.
    - Audit trail: constructing the facade installs the ORM immutability
      listeners (idempotent), so ledger rows and closed documents cannot be
      edited through the ORM.

Failure modes:
    - Business failures -> OperationResult with NOT_FOUND,
      VALIDATION_ERROR, INSUFFICIENT_STOCK, INVALID_STATUS or UNAUTHORIZED.
    - OptimisticLockError after retries, ImmutabilityViolationError and
      database errors propagate after rollback.

Audit relevance:
    Every call logs ``<operation>_started`` and either
    ``<operation>_completed`` (with duration_ms) or ``<operation>_rejected``
    (with the error code), all under a fresh correlation_id bound in
    LogContext together with tenant_id and actor_id.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from stock_kernel.db.immutability import register_immutability_listeners
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.context import IdentityProvider, TenantProvider
from stock_kernel.domain.references import DocumentRef
from stock_kernel.domain.requests import AdjustmentRequest, SaleRequest, TransferRequest
from stock_kernel.domain.results import OperationDocument, OperationResult, OperationStatus
from stock_kernel.exceptions import (
    InsufficientStockError,
    InvalidStatusError,
    InventoryKernelError,
    NotFoundError,
    OptimisticLockError,
    UnauthorizedError,
    ValidationError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.sale import Sale, SaleStatus
from stock_kernel.models.stock_adjustment import StockAdjustment
from stock_kernel.models.stock_transfer import StockTransfer, StockTransferStatus
from stock_kernel.services.adjustment_processor import AdjustmentProcessor
from stock_kernel.services.sale_stock_deductor import SaleStockDeductor
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_ledger import StockLedger
from stock_kernel.services.transaction_recorder import TransactionRecorder
from stock_kernel.services.transfer_coordinator import TransferCoordinator

if TYPE_CHECKING:
    from stock_config.schema import LedgerSettings

logger = get_logger("services.inventory_operations")

# Order matters: InsufficientStockError is a ValidationError
_STATUS_BY_ERROR: tuple[tuple[type[InventoryKernelError], OperationStatus], ...] = (
    (InsufficientStockError, OperationStatus.INSUFFICIENT_STOCK),
    (ValidationError, OperationStatus.VALIDATION_ERROR),
    (NotFoundError, OperationStatus.NOT_FOUND),
    (InvalidStatusError, OperationStatus.INVALID_STATUS),
    (UnauthorizedError, OperationStatus.UNAUTHORIZED),
)

_BUSINESS_ERRORS = tuple(error_type for error_type, _ in _STATUS_BY_ERROR)

Work = Callable[[UUID, "UUID | None"], OperationDocument]


def _status_for(exc: InventoryKernelError) -> OperationStatus:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    raise TypeError(f"Not a business error: {type(exc).__name__}")


def _adjustment_document(adjustment: StockAdjustment) -> OperationDocument:
    return OperationDocument(
        reference=DocumentRef.adjustment(adjustment.id),
        number=adjustment.adjustment_number,
        status="recorded",
        item_count=len(adjustment.items),
    )


def _transfer_document(transfer: StockTransfer) -> OperationDocument:
    return OperationDocument(
        reference=DocumentRef.transfer(transfer.id),
        number=transfer.transfer_number,
        status=StockTransferStatus(transfer.status).value,
        item_count=len(transfer.items),
    )


def _sale_document(sale: Sale) -> OperationDocument:
    return OperationDocument(
        reference=DocumentRef.sale(sale.id),
        number=sale.invoice_number,
        status=SaleStatus(sale.status).value,
        item_count=len(sale.items),
    )


class InventoryOperations:
    """
    Atomic, tenant-scoped stock operations with tagged results.

    Usage:
        ops = InventoryOperations(session, tenants, identity, clock=clock)
        result = ops.adjust_stock(AdjustmentRequest(...))
        if not result.is_success:
            return error_response(result.error_code, result.message)
    """

    def __init__(
        self,
        session: Session,
        tenants: TenantProvider,
        identity: IdentityProvider,
        clock: Clock | None = None,
        auto_commit: bool = True,
        max_retries: int = 3,
        low_stock_alerts: bool = True,
        adjustment_prefix: str = "ADJ",
        transfer_prefix: str = "TRF",
        sale_prefix: str = "INV",
    ):
        self._session = session
        self._tenants = tenants
        self._identity = identity
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit
        self._max_retries = max_retries

        register_immutability_listeners()
        sequences = SequenceService(session)
        ledger = StockLedger(session, self._clock, low_stock_alerts=low_stock_alerts)
        recorder = TransactionRecorder(session, self._clock, sequences)
        self._adjustments = AdjustmentProcessor(
            session, ledger, recorder, self._clock, sequences, adjustment_prefix
        )
        self._transfers = TransferCoordinator(
            session, ledger, recorder, self._clock, sequences, transfer_prefix
        )
        self._sales = SaleStockDeductor(
            session, ledger, recorder, self._clock, sequences, sale_prefix
        )

    @classmethod
    def from_settings(
        cls,
        session: Session,
        tenants: TenantProvider,
        identity: IdentityProvider,
        settings: LedgerSettings,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ) -> InventoryOperations:
        """Build from loaded ``stock_config`` settings."""
        return cls(
            session,
            tenants,
            identity,
            clock=clock,
            auto_commit=auto_commit,
            max_retries=settings.max_retries,
            low_stock_alerts=settings.low_stock_alerts,
            adjustment_prefix=settings.number_prefixes.adjustment,
            transfer_prefix=settings.number_prefixes.transfer,
            sale_prefix=settings.number_prefixes.sale,
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def adjust_stock(self, request: AdjustmentRequest) -> OperationResult:
        """Apply a manual adjustment (all lines or none)."""
        return self._execute(
            "stock_adjustment",
            lambda tenant_id, actor_id: _adjustment_document(
                self._adjustments.adjust(tenant_id, request, actor_id)
            ),
            warehouse_id=str(request.warehouse_id),
            reason=getattr(request.reason, "value", request.reason),
            line_count=len(request.items),
        )

    def initiate_transfer(self, request: TransferRequest) -> OperationResult:
        """Reserve stock at the source and create a PENDING transfer."""
        return self._execute(
            "transfer_initiation",
            lambda tenant_id, actor_id: _transfer_document(
                self._transfers.initiate(tenant_id, request, actor_id)
            ),
            from_warehouse_id=str(request.from_warehouse_id),
            to_warehouse_id=str(request.to_warehouse_id),
            line_count=len(request.items),
        )

    def dispatch_transfer(self, transfer_id: UUID) -> OperationResult:
        """Mark a PENDING transfer IN_TRANSIT."""
        return self._execute(
            "transfer_dispatch",
            lambda tenant_id, actor_id: _transfer_document(
                self._transfers.dispatch(tenant_id, transfer_id, actor_id)
            ),
            transfer_id=str(transfer_id),
        )

    def complete_transfer(self, transfer_id: UUID) -> OperationResult:
        """Move reserved stock to the destination and close the transfer."""
        return self._execute(
            "transfer_completion",
            lambda tenant_id, actor_id: _transfer_document(
                self._transfers.complete(tenant_id, transfer_id, actor_id)
            ),
            transfer_id=str(transfer_id),
        )

    def cancel_transfer(self, transfer_id: UUID, reason: str | None = None) -> OperationResult:
        """Release reservations of an open transfer and close it as CANCELLED."""
        return self._execute(
            "transfer_cancellation",
            lambda tenant_id, actor_id: _transfer_document(
                self._transfers.cancel(tenant_id, transfer_id, reason, actor_id)
            ),
            transfer_id=str(transfer_id),
        )

    def deduct_for_sale(self, request: SaleRequest) -> OperationResult:
        """Create a sale and deduct stock for its tracked lines."""
        return self._execute(
            "sale_deduction",
            lambda tenant_id, actor_id: _sale_document(
                self._sales.deduct(tenant_id, request, actor_id)
            ),
            warehouse_id=str(request.warehouse_id),
            line_count=len(request.items),
        )

    def restore_for_void(self, sale_id: UUID, reason: str | None = None) -> OperationResult:
        """Void a completed sale and restore the stock it deducted."""
        return self._execute(
            "sale_void",
            lambda tenant_id, actor_id: _sale_document(
                self._sales.restore_for_void(tenant_id, sale_id, reason, actor_id)
            ),
            sale_id=str(sale_id),
        )

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _execute(self, operation: str, work: Work, **log_fields) -> OperationResult:
        tenant_id = self._tenants.current_tenant_id()
        actor_id = self._identity.current_user_id()

        with LogContext.bind(
            tenant_id=str(tenant_id) if tenant_id else None,
            actor_id=str(actor_id) if actor_id else None,
            correlation_id=str(uuid4()),
        ):
            logger.info(f"{operation}_started", extra=log_fields)
            t0 = time.monotonic()

            if tenant_id is None:
                return self._rejected(operation, UnauthorizedError(), t0)

            attempt = 0
            while True:
                attempt += 1
                try:
                    with self._session.begin_nested():
                        document = work(tenant_id, actor_id)
                    if self._auto_commit:
                        self._session.commit()
                except _BUSINESS_ERRORS as exc:
                    if self._auto_commit:
                        self._session.rollback()
                    return self._rejected(operation, exc, t0)
                except OptimisticLockError:
                    if self._auto_commit:
                        self._session.rollback()
                    if attempt > self._max_retries:
                        logger.error(
                            f"{operation}_failed",
                            extra={"attempts": attempt, "duration_ms": self._elapsed(t0)},
                            exc_info=True,
                        )
                        raise
                    logger.warning(
                        f"{operation}_retry",
                        extra={"attempt": attempt, "max_retries": self._max_retries},
                    )
                    continue
                except Exception:
                    if self._auto_commit:
                        self._session.rollback()
                    logger.error(
                        f"{operation}_failed",
                        extra={"attempts": attempt, "duration_ms": self._elapsed(t0)},
                        exc_info=True,
                    )
                    raise

                logger.info(
                    f"{operation}_completed",
                    extra={
                        "document": str(document.reference),
                        "number": document.number,
                        "item_count": document.item_count,
                        "attempts": attempt,
                        "duration_ms": self._elapsed(t0),
                    },
                )
                return OperationResult.success(document)

    @staticmethod
    def _elapsed(t0: float) -> float:
        return round((time.monotonic() - t0) * 1000, 2)

    def _rejected(
        self,
        operation: str,
        exc: InventoryKernelError,
        t0: float,
    ) -> OperationResult:
        status = _status_for(exc)
        logger.info(
            f"{operation}_rejected",
            extra={
                "status": status.value,
                "error_code": exc.detail_code,
                "error_message": str(exc),
                "duration_ms": self._elapsed(t0),
            },
        )
        return OperationResult.failure(status, exc.detail_code, str(exc))
