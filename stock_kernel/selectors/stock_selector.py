"""
Module: stock_kernel.selectors.stock_selector
Responsibility: Read-only views of current stock levels, including the
    low-stock report.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Filtering and paging happen in SQL; only one page is materialized.
    - Low stock means quantity <= the product's reorder level.
    - available_quantity is derived (quantity - reserved_quantity).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from stock_kernel.models.catalog import Product
from stock_kernel.models.stock_level import StockLevel, make_stock_key
from stock_kernel.selectors.base import BaseSelector, Page


@dataclass(frozen=True)
class StockLevelInfo:
    """Snapshot of one stock level row joined to its product."""

    stock_level_id: UUID
    product_id: UUID
    product_name: str
    sku: str
    variant_id: UUID | None
    warehouse_id: UUID
    quantity: int
    reserved_quantity: int
    reorder_level: int
    last_updated: datetime | None
    version: int

    @property
    def available_quantity(self) -> int:
        return self.quantity - self.reserved_quantity

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.reorder_level


class StockSelector(BaseSelector[StockLevel]):
    """Stock level queries."""

    def __init__(self, session: Session, page_size_default: int = 50, page_size_max: int = 500):
        super().__init__(session, page_size_default, page_size_max)

    def _joined(self, tenant_id: UUID):
        return (
            select(StockLevel, Product)
            .join(
                Product,
                and_(
                    Product.id == StockLevel.product_id,
                    Product.tenant_id == StockLevel.tenant_id,
                ),
            )
            .where(StockLevel.tenant_id == tenant_id)
        )

    @staticmethod
    def _to_info(level: StockLevel, product: Product) -> StockLevelInfo:
        return StockLevelInfo(
            stock_level_id=level.id,
            product_id=level.product_id,
            product_name=product.name,
            sku=product.sku,
            variant_id=level.variant_id,
            warehouse_id=level.warehouse_id,
            quantity=level.quantity,
            reserved_quantity=level.reserved_quantity,
            reorder_level=product.reorder_level,
            last_updated=level.last_updated,
            version=level.version,
        )

    def get_stock_level(
        self,
        tenant_id: UUID,
        product_id: UUID,
        warehouse_id: UUID,
        variant_id: UUID | None = None,
    ) -> StockLevelInfo | None:
        """Current level for one (product, variant, warehouse), or None if never stocked."""
        key = make_stock_key(tenant_id, product_id, variant_id, warehouse_id)
        row = self.session.execute(
            self._joined(tenant_id).where(StockLevel.stock_key == key)
        ).one_or_none()
        if row is None:
            return None
        return self._to_info(row[0], row[1])

    def list_stock_levels(
        self,
        tenant_id: UUID,
        warehouse_id: UUID | None = None,
        product_id: UUID | None = None,
        low_stock_only: bool = False,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page[StockLevelInfo]:
        """
        Page through stock levels ordered by product name.

        Args:
            low_stock_only: Keep only rows at or below the reorder level.
            page: 1-based page number.
            page_size: Clamped to the configured maximum.
        """
        page, page_size = self._paging(page, page_size)

        query = self._joined(tenant_id)
        if warehouse_id is not None:
            query = query.where(StockLevel.warehouse_id == warehouse_id)
        if product_id is not None:
            query = query.where(StockLevel.product_id == product_id)
        if low_stock_only:
            query = query.where(StockLevel.quantity <= Product.reorder_level)

        total = self.session.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()

        rows = self.session.execute(
            query.order_by(Product.name, StockLevel.stock_key)
            .limit(page_size)
            .offset((page - 1) * page_size)
        ).all()

        return Page(
            items=tuple(self._to_info(level, product) for level, product in rows),
            page=page,
            page_size=page_size,
            total=total,
        )
