"""
Tenant and identity collaborators.

The ledger never reads ambient state to find out whose stock it is
touching.  InventoryOperations asks a TenantProvider once per call and
threads the resulting tenant id explicitly through every service; the
IdentityProvider supplies the acting user recorded as AdjustedBy,
TransferredBy, ReceivedBy and CashierId.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable
from uuid import UUID


@runtime_checkable
class TenantProvider(Protocol):
    """Resolves the tenant of the current request (trusted, not re-validated)."""

    def current_tenant_id(self) -> UUID | None: ...


@runtime_checkable
class IdentityProvider(Protocol):
    """Resolves the acting user of the current request."""

    def current_user_id(self) -> UUID | None: ...


class StaticTenantProvider:
    """Fixed tenant, for batch jobs, CLIs and tests."""

    def __init__(self, tenant_id: UUID | None):
        self._tenant_id = tenant_id

    def current_tenant_id(self) -> UUID | None:
        return self._tenant_id


class StaticIdentityProvider:
    """Fixed acting user, for batch jobs, CLIs and tests."""

    def __init__(self, user_id: UUID | None):
        self._user_id = user_id

    def current_user_id(self) -> UUID | None:
        return self._user_id
