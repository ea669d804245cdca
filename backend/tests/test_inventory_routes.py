"""
Inventory, directory and report API tests.
"""

from stockbook.extensions import db
from stockbook.models import Product


class TestProductRoutes:

    def test_create_list_update_delete(self, client, manager_headers):
        created = client.post(
            "/api/products",
            json={"sku": "AMOX-250", "name": "Amoxicillin 250mg", "price": "30.00", "discount": "1.00"},
            headers=manager_headers,
        )
        assert created.status_code == 201
        product_id = created.json["id"]

        listing = client.get("/api/products?q=amox&page=1", headers=manager_headers)
        assert listing.json["count"] == 1
        assert listing.json["pagination"]["total"] == 1

        updated = client.put(f"/api/products/{product_id}", json={"price": "32.00"}, headers=manager_headers)
        assert updated.status_code == 200
        assert updated.json["price"] == "32.00"

        assert client.delete(f"/api/products/{product_id}", headers=manager_headers).status_code == 200
        assert client.get("/api/products", headers=manager_headers).json["count"] == 0

    def test_duplicate_sku(self, client, manager_headers, product):
        resp = client.post("/api/products", json={"sku": product.sku, "name": "Dup"}, headers=manager_headers)
        assert resp.status_code == 409

    def test_quantity_is_not_writable(self, client, manager_headers):
        resp = client.post(
            "/api/products",
            json={"sku": "Q-1", "name": "Q", "quantity_on_hand": 50},
            headers=manager_headers,
        )
        assert resp.status_code == 400

    def test_discount_above_price(self, client, manager_headers, product):
        resp = client.put(f"/api/products/{product.id}", json={"discount": "99"}, headers=manager_headers)
        assert resp.status_code == 400

    def test_sku_is_immutable(self, client, manager_headers, product):
        resp = client.put(f"/api/products/{product.id}", json={"sku": "RENAMED"}, headers=manager_headers)
        assert resp.status_code == 409


class TestLotRoutes:

    def test_batch_receipt_and_listing(self, client, manager_headers, product):
        resp = client.post(
            "/api/lots",
            json={
                "sku": product.sku,
                "batch_number": "B-77",
                "quantity": 2,
                "pack_size": "10",
                "unit_price": "12.50",
                "expiry_date": "2027-05-31",
            },
            headers=manager_headers,
        )
        assert resp.status_code == 201
        lot = resp.json["lot"]
        assert lot["quantity_remaining"] == 20
        assert lot["reference"] == f"PI#{lot['id']}"

        listing = client.get(f"/api/lots?sku={product.sku}", headers=manager_headers)
        assert [l["id"] for l in listing.json["items"]] == [lot["id"]]

        detail = client.get(f"/api/lots/{lot['id']}", headers=manager_headers)
        assert detail.json["lot"]["events"][0]["event_type"] == "lot.credited"

    def test_missing_sku_query(self, client, manager_headers):
        assert client.get("/api/lots", headers=manager_headers).status_code == 400

    def test_invalid_batch(self, client, manager_headers, product):
        resp = client.post("/api/lots", json={"sku": product.sku, "quantity": 1}, headers=manager_headers)
        assert resp.status_code == 400

    def test_credit_and_delete(self, client, manager_headers, stocked_product):
        lot_id = stocked_product["lot_none"].id

        credited = client.post(f"/api/lots/{lot_id}/credit", json={"base_units": 2}, headers=manager_headers)
        assert credited.status_code == 200
        assert credited.json["lot"]["quantity_remaining"] == 10

        bad = client.post(f"/api/lots/{lot_id}/credit", json={"base_units": 0}, headers=manager_headers)
        assert bad.status_code == 400

        deleted = client.delete(f"/api/lots/{lot_id}", headers=manager_headers)
        assert deleted.json["outcome"] == "deleted"
        assert client.get(f"/api/lots/{lot_id}", headers=manager_headers).status_code == 404

    def test_delete_sold_lot_retires(self, client, manager_headers, cashier_headers, stocked_product):
        lot_early = stocked_product["lot_early"]
        client.post(
            "/api/sales",
            json={"customer": "X", "items": [{"sku": lot_early.sku, "quantity": 1, "lot_id": lot_early.id}]},
            headers=cashier_headers,
        )

        first = client.delete(f"/api/lots/{lot_early.id}", headers=manager_headers)
        assert first.json["outcome"] == "retired"

        second = client.delete(f"/api/lots/{lot_early.id}", headers=manager_headers)
        assert second.status_code == 409


class TestPurchaseRoutes:

    def test_receive_and_fetch(self, client, manager_headers, product):
        resp = client.post(
            "/api/purchases",
            json={
                "ref_no": "PO-9",
                "supplier": "MedSupply",
                "batch_number": "PB-9",
                "items": [
                    {"sku": product.sku, "pack_size": "6x10", "quantity": 1, "unit_cost": "300", "unit_price": "420"},
                ],
            },
            headers=manager_headers,
        )
        assert resp.status_code == 201
        purchase = resp.json["purchase"]
        assert purchase["total"] == "300.00"
        assert purchase["lots"][0]["quantity_remaining"] == 60

        fetched = client.get(f"/api/purchases/{purchase['id']}", headers=manager_headers)
        assert fetched.json["purchase"]["ref_no"] == "PO-9"
        assert client.get("/api/purchases", headers=manager_headers).json["count"] == 1
        assert client.get("/api/purchases/999", headers=manager_headers).status_code == 404

        db.session.expire_all()
        assert db.session.get(Product, product.id).quantity_on_hand == 60

    def test_invalid_purchase(self, client, manager_headers):
        resp = client.post("/api/purchases", json={"batch_number": "PB"}, headers=manager_headers)
        assert resp.status_code == 400


class TestDirectoryRoutes:

    def test_customers(self, client, manager_headers):
        created = client.post(
            "/api/customers",
            json={"name": "Gamma Clinic", "vat": "VAT-9"},
            headers=manager_headers,
        )
        assert created.status_code == 201
        customer = created.json["customer"]
        assert customer["code"] == f"CUST-{customer['id']:04d}"

        assert client.post("/api/customers", json={"name": "Gamma Clinic"}, headers=manager_headers).status_code == 400

        updated = client.put(f"/api/customers/{customer['id']}", json={"phone": "55"}, headers=manager_headers)
        assert updated.json["customer"]["phone"] == "55"

        assert client.delete(f"/api/customers/{customer['id']}", headers=manager_headers).status_code == 200
        assert client.get("/api/customers", headers=manager_headers).json["count"] == 0
        assert client.put("/api/customers/999", json={}, headers=manager_headers).status_code == 404

    def test_suppliers(self, client, manager_headers):
        created = client.post("/api/suppliers", json={"name": "MedSupply"}, headers=manager_headers)
        assert created.status_code == 201
        supplier_id = created.json["supplier"]["id"]

        assert client.post("/api/suppliers", json={"name": ""}, headers=manager_headers).status_code == 400

        updated = client.put(f"/api/suppliers/{supplier_id}", json={"phone": "1"}, headers=manager_headers)
        assert updated.json["supplier"]["phone"] == "1"
        assert client.get("/api/suppliers", headers=manager_headers).json["count"] == 1


class TestReportRoutes:

    def test_stock_report(self, client, manager_headers, stocked_product):
        resp = client.get("/api/reports/stock", headers=manager_headers)

        assert resp.status_code == 200
        assert resp.json["drifting"] == 0
        assert resp.json["items"][0]["lot_quantity"] == 23
