"""
Module: stock_kernel.db.base
Responsibility: Declarative foundation shared by every stock kernel table:
    portable UUID columns, the Python-type to column-type map, constraint
    naming, and the audit / tenant mixins.
Architecture position: Kernel > DB.  Imported by models/, selectors/ and
    services/base.py.  Imports nothing from the kernel.

Invariants enforced:
    - Primary keys are uuid4 values stored as 36-character strings, so the
      same schema runs on SQLite and PostgreSQL.
    - Quantities (``int``) are BigInteger and signed; negative on-hand stock
      is representable for products that allow it.
    - Costs (``Decimal``) are Numeric(38, 9) and never pass through float.
    - Tenant-owned rows carry a non-null, indexed tenant_id.

Audit relevance:
    created_by_id / updated_by_id hold the acting user when the identity
    collaborator supplies one and stay NULL for system calls.  The
    updated_* pair may change on otherwise immutable rows.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, MetaData, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Applied only to constraints and indexes declared without an explicit name
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UUIDString(TypeDecorator):
    """uuid.UUID in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        # Accept the canonical string form as well, e.g. from raw filters
        return str(value if isinstance(value, PyUUID) else PyUUID(str(value)))

    def process_result_value(self, value, dialect):
        return PyUUID(value) if value is not None else None


class Base(DeclarativeBase):
    """Root of every mapped class; supplies the ``id`` primary key."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map: ClassVar[dict] = {
        int: BigInteger,
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds when/who audit columns.

    Services pass ``created_at`` from their injected clock; the server
    default only covers rows inserted some other way.  ``updated_at`` is
    refreshed by the database on every UPDATE.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    created_by_id: Mapped[PyUUID | None] = mapped_column(UUIDString(), nullable=True)

    updated_by_id: Mapped[PyUUID | None] = mapped_column(UUIDString(), nullable=True)


class TenantScopedBase(TrackedBase):
    """TrackedBase for rows owned by exactly one tenant."""

    __abstract__ = True

    tenant_id: Mapped[PyUUID] = mapped_column(UUIDString(), nullable=False, index=True)


UUID = PyUUID
