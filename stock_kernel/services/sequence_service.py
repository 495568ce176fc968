"""
SequenceService -- monotonic counters behind locked rows.

Two kinds of counters live in ``sequence_counters``:

    inventory_transaction:<tenant>   replay order of a tenant's ledger rows
    <PREFIX>:<tenant>                document numbers, e.g. ADJ-20240101-0001

A counter row is read with ``SELECT ... FOR UPDATE`` and incremented in
the caller's transaction, so concurrent writers queue on the row and a
rolled-back unit of work gives its numbers back.  Document tables are never
scanned for ``MAX(...) + 1``.

Lock order within a tenant:

    1. inventory_transaction:<tenant>   (lock_ledger, first thing)
    2. transfer/sale header or document-number counter
    3. stock levels

Every stock-moving operation takes the ledger counter before touching a
header or a stock level, so writers for one tenant queue on that row and
can never hold two stock rows in opposite orders.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from stock_kernel.db.base import Base
from stock_kernel.logging_config import get_logger

logger = get_logger("services.sequence")

TRANSACTION_SEQUENCE = "inventory_transaction"


def counter_name(kind: str, tenant_id: UUID) -> str:
    return f"{kind}:{tenant_id}"


class SequenceCounter(Base):
    """Current value of one named counter."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class SequenceService:
    """Allocates counter values inside the caller's transaction (flush only)."""

    TRANSACTION_SEQUENCE = TRANSACTION_SEQUENCE

    def __init__(self, session: Session):
        self._session = session

    def _select(self, name: str, lock: bool):
        stmt = select(SequenceCounter).where(SequenceCounter.name == name)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self._session.execute(stmt).scalar_one_or_none()

    def _lock_or_create(self, name: str) -> SequenceCounter:
        counter = self._select(name, lock=True)
        if counter is not None:
            return counter

        savepoint = self._session.begin_nested()
        try:
            counter = SequenceCounter(name=name, current_value=0)
            self._session.add(counter)
            self._session.flush()
            savepoint.commit()
            return counter
        except IntegrityError:
            # Lost the creation race; the winner's row is now visible
            savepoint.rollback()
            logger.debug("sequence_counter_race_retry", extra={"sequence_name": name})
            counter = self._select(name, lock=True)
            if counter is None:
                raise
            return counter

    def next_value(self, name: str) -> int:
        """Increment and return the counter; the first value is 1."""
        counter = self._lock_or_create(name)
        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, name: str) -> int | None:
        counter = self._select(name, lock=False)
        return counter.current_value if counter is not None else None

    def lock_ledger(self, tenant_id: UUID) -> None:
        """Hold the tenant's ledger counter until the transaction ends."""
        self._lock_or_create(counter_name(TRANSACTION_SEQUENCE, tenant_id))

    def next_transaction_sequence(self, tenant_id: UUID) -> int:
        return self.next_value(counter_name(TRANSACTION_SEQUENCE, tenant_id))

    def next_document_number(self, tenant_id: UUID, prefix: str, on: datetime) -> str:
        """
        ``{PREFIX}-{yyyyMMdd}-{NNNN}``.

        The date is ``on`` (the document date).  The counter is per tenant
        and per prefix and does not restart each day, so a number is unique
        within the tenant even though the date segment repeats.
        """
        value = self.next_value(counter_name(prefix, tenant_id))
        return f"{prefix}-{on:%Y%m%d}-{value:04d}"
