"""TransactionSelector: listing, replay and replay verification."""

from datetime import timedelta

from sqlalchemy import update

from stock_kernel.domain.requests import SaleLine, SaleRequest
from stock_kernel.models.inventory_transaction import InventoryTransactionType
from stock_kernel.models.stock_level import StockLevel


class TestListTransactions:

    def test_newest_first(self, transaction_selector, tenant_id, product, warehouse_a, seed_stock, deterministic_clock):
        seed_stock(product, warehouse_a, 1)
        deterministic_clock.advance(60)
        seed_stock(product, warehouse_a, 2)

        page = transaction_selector.list_transactions(tenant_id, product_id=product.id)
        assert [t.quantity for t in page.items] == [2, 1]

    def test_filter_by_type(self, ops, transaction_selector, tenant_id, product, warehouse_a, seed_stock):
        seed_stock(product, warehouse_a, 5)
        ops.deduct_for_sale(SaleRequest(warehouse_a.id, (SaleLine(product.id, 2),)))

        sales = transaction_selector.list_transactions(
            tenant_id, transaction_type=InventoryTransactionType.SALE
        )
        assert [t.quantity for t in sales.items] == [-2]

    def test_filter_by_date_range(self, transaction_selector, tenant_id, product, warehouse_a, seed_stock, deterministic_clock):
        start = deterministic_clock.now()
        seed_stock(product, warehouse_a, 1)
        deterministic_clock.advance(3600)
        seed_stock(product, warehouse_a, 2)
        deterministic_clock.advance(3600)
        seed_stock(product, warehouse_a, 3)

        page = transaction_selector.list_transactions(
            tenant_id,
            date_from=start + timedelta(minutes=30),
            date_to=start + timedelta(minutes=90),
        )
        assert [t.quantity for t in page.items] == [2]

    def test_paging(self, transaction_selector, tenant_id, product, warehouse_a, seed_stock):
        for quantity in range(1, 6):
            seed_stock(product, warehouse_a, quantity)

        page = transaction_selector.list_transactions(tenant_id, page=2, page_size=2)
        assert [t.quantity for t in page.items] == [3, 2]
        assert page.total == 5

    def test_other_tenants_hidden(self, transaction_selector, other_tenant_id, product, warehouse_a, seed_stock):
        seed_stock(product, warehouse_a, 1)
        assert transaction_selector.list_transactions(other_tenant_id).total == 0


class TestReplay:

    def test_replay_matches_stored_quantity(self, ops, transaction_selector, tenant_id, product, warehouse_a, seed_stock):
        seed_stock(product, warehouse_a, 10)
        ops.deduct_for_sale(SaleRequest(warehouse_a.id, (SaleLine(product.id, 4),)))

        assert transaction_selector.replay_quantity(tenant_id, product.id, warehouse_a.id) == 6
        check = transaction_selector.verify_replay(tenant_id, product.id, warehouse_a.id)
        assert check.matches
        assert (check.stored_quantity, check.replayed_quantity, check.transaction_count) == (6, 6, 2)

    def test_empty_history(self, transaction_selector, tenant_id, product, warehouse_a):
        check = transaction_selector.verify_replay(tenant_id, product.id, warehouse_a.id)
        assert check.matches
        assert check.transaction_count == 0

    def test_variant_replayed_separately(self, transaction_selector, tenant_id, product, make_variant, warehouse_a, seed_stock):
        variant = make_variant(product)
        seed_stock(product, warehouse_a, 3)
        seed_stock(product, warehouse_a, 8, variant_id=variant.id)

        assert transaction_selector.replay_quantity(tenant_id, product.id, warehouse_a.id) == 3
        assert transaction_selector.replay_quantity(tenant_id, product.id, warehouse_a.id, variant.id) == 8

    def test_detects_drift(self, session, transaction_selector, tenant_id, product, warehouse_a, seed_stock):
        seed_stock(product, warehouse_a, 10)
        session.execute(
            update(StockLevel)
            .where(StockLevel.product_id == product.id)
            .values(quantity=11, version=StockLevel.version + 1)
            .execution_options(synchronize_session=False)
        )

        check = transaction_selector.verify_replay(tenant_id, product.id, warehouse_a.id)
        assert not check.matches
        assert (check.stored_quantity, check.replayed_quantity) == (11, 10)
