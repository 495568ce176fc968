"""
Tagged results for the public stock operations.

Expected business failures (missing rows, bad request shapes, insufficient
stock, wrong document status, missing tenant) are returned as an
OperationResult with a non-success status.  Only infrastructure faults
propagate as exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from stock_kernel.domain.references import DocumentRef


class OperationStatus(str, Enum):
    """Outcome of a stock operation."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    INSUFFICIENT_STOCK = "insufficient_stock"
    INVALID_STATUS = "invalid_status"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class OperationDocument:
    """Header summary of the document a successful operation produced or touched."""

    reference: DocumentRef
    number: str
    status: str
    item_count: int

    @property
    def document_id(self) -> UUID:
        return self.reference.document_id


@dataclass(frozen=True)
class OperationResult:
    """Result of a stock operation."""

    status: OperationStatus
    document: OperationDocument | None = None
    error_code: str | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    @classmethod
    def success(cls, document: OperationDocument) -> OperationResult:
        return cls(status=OperationStatus.SUCCESS, document=document)

    @classmethod
    def failure(
        cls,
        status: OperationStatus,
        error_code: str,
        message: str,
    ) -> OperationResult:
        return cls(status=status, error_code=error_code, message=message)
