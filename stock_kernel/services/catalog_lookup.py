"""
CatalogLookup -- tenant-scoped reads of reference data.

Products, variants, warehouses and customers are owned by master-data
services outside the kernel.  Ledger services only need to confirm they
exist *for this tenant* and read stock policy from them.  A row belonging
to another tenant is indistinguishable from a missing one.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.exceptions import (
    CustomerNotFoundError,
    ProductNotFoundError,
    VariantNotFoundError,
    WarehouseNotFoundError,
)
from stock_kernel.models.catalog import Customer, Product, ProductVariant, Warehouse


class CatalogLookup:
    """Fetch-or-raise accessors for reference data within one tenant."""

    def __init__(self, session: Session):
        self._session = session

    def find_product(self, tenant_id: UUID, product_id: UUID) -> Product | None:
        return self._session.execute(
            select(Product).where(
                Product.id == product_id,
                Product.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()

    def product(self, tenant_id: UUID, product_id: UUID) -> Product:
        product = self.find_product(tenant_id, product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def variant(self, product: Product, variant_id: UUID | None) -> ProductVariant | None:
        """Resolve an optional variant; it must belong to ``product``."""
        if variant_id is None:
            return None
        variant = self._session.execute(
            select(ProductVariant).where(
                ProductVariant.id == variant_id,
                ProductVariant.product_id == product.id,
            )
        ).scalar_one_or_none()
        if variant is None:
            raise VariantNotFoundError(str(variant_id))
        return variant

    def warehouse(self, tenant_id: UUID, warehouse_id: UUID) -> Warehouse:
        warehouse = self._session.execute(
            select(Warehouse).where(
                Warehouse.id == warehouse_id,
                Warehouse.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        if warehouse is None:
            raise WarehouseNotFoundError(str(warehouse_id))
        return warehouse

    def customer(self, tenant_id: UUID, customer_id: UUID) -> Customer:
        customer = self._session.execute(
            select(Customer).where(
                Customer.id == customer_id,
                Customer.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        if customer is None:
            raise CustomerNotFoundError(str(customer_id))
        return customer
