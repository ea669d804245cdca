"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Cashier role denied inventory, directory and user management (403)
- Manager and admin can perform privileged operations
"""

import pytest

from stockbook.permissions import ALL_PERMISSIONS, DEFAULT_ROLE_PERMISSIONS, has_permission


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/lots?sku=X"),
            ("POST", "/api/lots"),
            ("GET", "/api/purchases"),
            ("POST", "/api/purchases"),
            ("GET", "/api/sales"),
            ("POST", "/api/sales"),
            ("GET", "/api/sales/2526-01/invoice"),
            ("GET", "/api/customers"),
            ("GET", "/api/suppliers"),
            ("GET", "/api/reports/stock"),
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/users"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client):
        resp = client.get("/api/products", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_health_is_public(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"


# =============================================================================
# CASHIER DENIED PRIVILEGED OPERATIONS (403)
# =============================================================================


class TestCashierDenied:
    """Cashier role sells and looks up stock only."""

    @pytest.mark.parametrize(
        "method,path,body",
        [
            ("POST", "/api/products", {"sku": "X", "name": "X"}),
            ("POST", "/api/lots", {"sku": "X"}),
            ("DELETE", "/api/lots/1", None),
            ("POST", "/api/purchases", {}),
            ("POST", "/api/customers", {"name": "X"}),
            ("GET", "/api/suppliers", None),
            ("GET", "/api/reports/stock", None),
            ("POST", "/api/auth/users", {}),
        ],
    )
    def test_denied(self, client, cashier_headers, method, path, body):
        resp = getattr(client, method.lower())(path, json=body, headers=cashier_headers)
        assert resp.status_code == 403
        assert "required_permission" in resp.json

    def test_can_view_inventory_and_sales(self, client, cashier_headers):
        assert client.get("/api/products", headers=cashier_headers).status_code == 200
        assert client.get("/api/sales", headers=cashier_headers).status_code == 200
        assert client.get("/api/customers", headers=cashier_headers).status_code == 200


class TestPrivilegedRoles:

    def test_manager_can_create_product(self, client, manager_headers):
        resp = client.post(
            "/api/products",
            json={"sku": "NEW-1", "name": "New Product", "price": "5.00"},
            headers=manager_headers,
        )
        assert resp.status_code == 201
        assert resp.json["quantity_on_hand"] == 0

    def test_manager_cannot_manage_users(self, client, manager_headers):
        resp = client.post("/api/auth/users", json={}, headers=manager_headers)
        assert resp.status_code == 403

    def test_admin_can_create_user(self, client, admin_headers):
        resp = client.post(
            "/api/auth/users",
            json={"username": "cash2", "email": "cash2@stockbook.test", "password": "Password123!"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "cashier"


class TestRolePermissionMap:

    def test_admin_has_everything(self):
        assert set(DEFAULT_ROLE_PERMISSIONS["admin"]) == set(ALL_PERMISSIONS)

    def test_unknown_role_has_nothing(self):
        assert has_permission("ghost", "CREATE_SALE") is False

    def test_cashier_cannot_receive(self):
        assert has_permission("cashier", "CREATE_SALE") is True
        assert has_permission("cashier", "RECEIVE_INVENTORY") is False
