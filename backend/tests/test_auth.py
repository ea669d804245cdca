import pytest

from conftest import TEST_PASSWORD
from stockbook.extensions import db
from stockbook.services import auth_service
from stockbook.services.auth_service import PasswordValidationError


class TestPasswordRules:

    @pytest.mark.parametrize("password", ["Short1!", "alllower123!", "ALLUPPER123!", "NoDigits!!", "NoSpecial123"])
    def test_weak_passwords(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_hash_roundtrip(self, app):
        hashed = auth_service.hash_password(TEST_PASSWORD)
        assert hashed != TEST_PASSWORD
        assert auth_service.verify_password(TEST_PASSWORD, hashed)
        assert not auth_service.verify_password("wrong", hashed)
        assert not auth_service.verify_password(TEST_PASSWORD, "not-a-hash")


class TestCreateUser:

    def test_unknown_role(self, db_session):
        with pytest.raises(ValueError):
            auth_service.create_user("x", "x@x.test", TEST_PASSWORD, role="owner")

    def test_duplicate(self, cashier_user):
        with pytest.raises(ValueError):
            auth_service.create_user("cashier_user", "other@x.test", TEST_PASSWORD)


class TestLoginFlow:

    def test_login_me_logout(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"username": "cashier_user", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        token = resp.json["token"]
        assert "CREATE_SALE" in resp.json["permissions"]
        assert "RECEIVE_INVENTORY" not in resp.json["permissions"]

        headers = {"Authorization": f"Bearer {token}"}
        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.json["user"]["username"] == "cashier_user"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_login_by_email(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"email": "CASHIER@stockbook.test", "password": TEST_PASSWORD})
        assert resp.status_code == 200

    def test_bad_password(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"username": "cashier_user", "password": "nope"})
        assert resp.status_code == 401

    def test_missing_fields(self, client):
        assert client.post("/api/auth/login", json={}).status_code == 400

    def test_deactivated_user_loses_session(self, client, cashier_user, cashier_headers):
        cashier_user.is_active = False
        db.session.commit()

        assert client.get("/api/auth/me", headers=cashier_headers).status_code == 401
