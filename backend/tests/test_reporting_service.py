from decimal import Decimal

from conftest import make_lot, make_product
from stockbook.extensions import db
from stockbook.models import Product
from stockbook.services.reporting_service import reconcile_quantity_cache, stock_report


def _drift(product, value):
    db.session.execute(
        Product.__table__.update().where(Product.id == product.id).values(quantity_on_hand=value)
    )
    db.session.commit()


class TestStockReport:

    def test_rows_and_value(self, product):
        make_lot(product.sku, 3, pack_size="10", unit_cost="6.00")
        make_lot(product.sku, 2, unit_cost=None)
        product.cost = Decimal("0.50")
        db.session.commit()

        [row] = stock_report()

        assert row["sku"] == product.sku
        assert row["quantity_on_hand"] == 32
        assert row["lot_quantity"] == 32
        assert row["drift"] is False
        # 3 packs * 6.00 + 2 units * 0.50 (product cost fallback)
        assert row["stock_value"] == "19.00"

    def test_inactive_products_hidden_by_default(self, product):
        make_product(sku="OLD-1", name="Discontinued", is_active=False)

        assert [r["sku"] for r in stock_report()] == [product.sku]
        assert {r["sku"] for r in stock_report(include_inactive=True)} == {product.sku, "OLD-1"}

    def test_drift_is_flagged(self, stocked_product):
        _drift(stocked_product["product"], 99)

        [row] = stock_report()
        assert row["drift"] is True
        assert row["lot_quantity"] == 23


class TestReconcile:

    def test_report_only(self, stocked_product):
        product = stocked_product["product"]
        _drift(product, 99)

        drift = reconcile_quantity_cache()

        assert drift == [{"product_id": product.id, "sku": product.sku, "cached": 99, "lot_sum": 23}]
        db.session.expire_all()
        assert db.session.get(Product, product.id).quantity_on_hand == 99

    def test_fix(self, stocked_product):
        product = stocked_product["product"]
        _drift(product, 99)

        reconcile_quantity_cache(fix=True)

        db.session.expire_all()
        assert db.session.get(Product, product.id).quantity_on_hand == 23
        assert reconcile_quantity_cache() == []

    def test_retired_lots_do_not_count(self, stocked_product):
        lot = stocked_product["lot_none"]
        lot.status = "RETIRED"
        db.session.commit()

        [entry] = reconcile_quantity_cache()
        assert entry["lot_sum"] == 15


class TestStockCli:

    def test_reconcile_command(self, app, stocked_product):
        _drift(stocked_product["product"], 1)
        runner = app.test_cli_runner()

        result = runner.invoke(args=["stock", "reconcile"])
        assert "DRIFT PARA-500: cached=1 lots=23" in result.output

        result = runner.invoke(args=["stock", "reconcile", "--fix"])
        assert "Fixed 1 product(s)" in result.output

        result = runner.invoke(args=["stock", "reconcile"])
        assert "No drift" in result.output
