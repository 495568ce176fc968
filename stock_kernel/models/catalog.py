"""
Module: stock_kernel.models.catalog
Responsibility: Reference data the ledger reads but never writes -- products,
    product variants, warehouses and customers.
Architecture position: Kernel > Models.  Master-data CRUD lives outside the
    kernel; these mappings exist so ledger services can look rows up within
    a tenant and read the per-product stock policy flags.

Invariants enforced:
    - Every row is tenant-scoped (TenantScopedBase), except ProductVariant,
      which inherits its tenant through its product.
    - cost_price is Decimal (Numeric(38,9)).

Audit relevance:
    Sale items snapshot name, SKU and cost from Product at sale time so later
    catalog edits do not rewrite history.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TenantScopedBase, TrackedBase


class Product(TenantScopedBase):
    """
    Stockable product.

    Stock policy:
        - track_inventory: False means sales never touch the ledger.
        - allow_negative_stock: permits on-hand quantity below zero for
          adjustments and sales.  Transfers always require available stock.
        - reorder_level: quantity at or below which the stock level is low.
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("tenant_id", "sku", name="uq_product_tenant_sku"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    sku: Mapped[str] = mapped_column(String(100), nullable=False)

    # Unit cost recorded on sale transactions
    cost_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    track_inventory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    allow_negative_stock: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    reorder_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Product {self.sku}: {self.name}>"


class ProductVariant(TrackedBase):
    """Variant of a product (size, colour, ...) stocked separately."""

    __tablename__ = "product_variants"

    __table_args__ = (
        Index("idx_variant_product", "product_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<ProductVariant {self.name} of {self.product_id}>"


class Warehouse(TenantScopedBase):
    """Physical or logical stock location."""

    __tablename__ = "warehouses"

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_warehouse_tenant_code"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Warehouse {self.code}: {self.name}>"


class Customer(TenantScopedBase):
    """Customer a sale may be attributed to."""

    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def __repr__(self) -> str:
        return f"<Customer {self.name}>"
