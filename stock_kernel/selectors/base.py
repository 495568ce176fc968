"""
Module: stock_kernel.selectors.base
Responsibility: Abstract base class for read-only stock queries.
Architecture position: Kernel > Selectors.  May import from db/ and models/.
    MUST NOT import from services/.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - Selectors return frozen dataclasses, not ORM instances.
    - Every query is filtered by the tenant id the caller passes.
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from stock_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)
RowType = TypeVar("RowType")

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


@dataclass(frozen=True)
class Page(Generic[RowType]):
    """One page of a server-side paged query."""

    items: tuple[RowType, ...]
    page: int
    page_size: int
    total: int

    @property
    def page_count(self) -> int:
        if self.total == 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        return self.page < self.page_count


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    The caller owns the session and its transaction scope.  Paging bounds
    default to the values in ``stock_config/defaults.yaml``.
    """

    def __init__(
        self,
        session: Session,
        page_size_default: int = DEFAULT_PAGE_SIZE,
        page_size_max: int = MAX_PAGE_SIZE,
    ):
        self.session = session
        self._page_size_default = page_size_default
        self._page_size_max = page_size_max

    @classmethod
    def from_settings(cls, session: Session, settings):
        """Build with paging bounds from a ``stock_config`` LedgerSettings."""
        return cls(
            session,
            page_size_default=settings.page_size_default,
            page_size_max=settings.page_size_max,
        )

    def _paging(self, page: int, page_size: int | None) -> tuple[int, int]:
        """Normalize (page, page_size) and return them clamped."""
        if page_size is None or page_size < 1:
            page_size = self._page_size_default
        page_size = min(page_size, self._page_size_max)
        return max(page, 1), page_size
