"""
Shared base for the write-side stock services.

Every service works inside a Session owned by someone else (normally
InventoryOperations).  Services ``flush()`` so later statements in the same
unit of work see their rows, but never ``commit()`` or ``rollback()``: a
stock level change and its inventory transaction must land or vanish
together.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from stock_kernel.db.base import Base
from stock_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Holds the caller's session and the injected clock."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    @property
    def clock(self) -> Clock:
        return self._clock
