"""
Sales API tests.

Verifies:
- POST /api/sales returns 201 with the invoice number and totals
- Typed errors map to 400 / 500 with a stable code
- Listing, lookup and printing of invoices
"""

from stockbook.extensions import db
from stockbook.models import Invoice
from stockbook.services import numbering_service


def _sale(sku, quantity=2, **extra):
    return {
        "customer": {"name": "Counter Sale", "phone": "0700"},
        "invoice_date": "2025-09-10",
        "items": [{"sku": sku, "quantity": quantity, **extra}],
    }


class TestCreateSaleRoute:

    def test_created(self, client, cashier_headers, stocked_product):
        resp = client.post("/api/sales", json=_sale(stocked_product["product"].sku), headers=cashier_headers)

        assert resp.status_code == 201
        body = resp.json
        assert body["invoice_number"] == "2526-01"
        assert body["customer_created"] is True
        # default tax rate of the test app is 10%
        assert body["totals"] == {
            "sub_total": "25.00",
            "line_discount_total": "0.00",
            "tax_rate": "0.10",
            "tax_amount": "2.50",
            "grand_total": "27.50",
        }

    def test_insufficient_stock(self, client, cashier_headers, stocked_product):
        resp = client.post(
            "/api/sales",
            json=_sale(stocked_product["product"].sku, quantity=100),
            headers=cashier_headers,
        )

        assert resp.status_code == 400
        assert resp.json["code"] == "INSUFFICIENT_STOCK"
        assert resp.json["details"]["available"] == 23
        assert resp.json["details"]["retryable"] is False
        assert db.session.query(Invoice).count() == 0

    def test_invalid_line(self, client, cashier_headers, stocked_product):
        resp = client.post("/api/sales", json=_sale("NOPE"), headers=cashier_headers)

        assert resp.status_code == 400
        assert resp.json["code"] == "INVALID_LINE_ITEM"
        assert resp.json["details"]["line_number"] == 1

    def test_non_string_customer_name(self, client, cashier_headers, stocked_product):
        payload = _sale(stocked_product["product"].sku)
        payload["customer"] = {"name": 42}

        resp = client.post("/api/sales", json=payload, headers=cashier_headers)

        assert resp.status_code == 400
        assert resp.json["code"] == "SALE_ERROR"
        assert db.session.query(Invoice).count() == 0

    def test_malformed_body(self, client, cashier_headers):
        resp = client.post("/api/sales", data="not json", headers=cashier_headers)

        assert resp.status_code == 400
        assert resp.json["code"] == "SALE_ERROR"

    def test_numbering_conflict_is_retryable_500(self, client, cashier_headers, stocked_product, monkeypatch):
        sku = stocked_product["product"].sku
        client.post("/api/sales", json=_sale(sku), headers=cashier_headers)
        monkeypatch.setattr(numbering_service, "current_max_sequence", lambda fiscal: 0)

        resp = client.post("/api/sales", json=_sale(sku), headers=cashier_headers)

        assert resp.status_code == 500
        assert resp.json["code"] == "NUMBERING_CONFLICT"
        assert resp.json["details"]["retryable"] is True


class TestInvoiceRoutes:

    def test_list_and_get(self, client, cashier_headers, stocked_product):
        sku = stocked_product["product"].sku
        client.post("/api/sales", json=_sale(sku), headers=cashier_headers)

        listing = client.get("/api/sales?fiscal=2526", headers=cashier_headers)
        assert listing.status_code == 200
        assert listing.json["count"] == 1
        assert listing.json["items"][0]["item_count"] == 1

        detail = client.get("/api/sales/2526-01", headers=cashier_headers)
        assert detail.status_code == 200
        assert detail.json["invoice"]["lines"][0]["sku"] == sku

        assert client.get("/api/sales/2526-99", headers=cashier_headers).status_code == 404

    def test_print_html_and_json(self, client, cashier_headers, stocked_product):
        client.post("/api/sales", json=_sale(stocked_product["product"].sku), headers=cashier_headers)

        html = client.get("/api/sales/2526-01/invoice?layout=dot", headers=cashier_headers)
        assert html.status_code == 200
        assert html.mimetype == "text/html"
        assert b"2526-01" in html.data

        doc = client.get("/api/sales/2526-01/invoice?as=json&final_discount=5", headers=cashier_headers)
        assert doc.status_code == 200
        assert doc.json["totals"]["printed_total"] == "22.50"
        assert doc.json["totals"]["stored_grand_total"] == "27.50"

    def test_print_rejects_bad_options(self, client, cashier_headers, stocked_product):
        client.post("/api/sales", json=_sale(stocked_product["product"].sku), headers=cashier_headers)

        resp = client.get("/api/sales/2526-01/invoice?layout=pdf", headers=cashier_headers)
        assert resp.status_code == 400
