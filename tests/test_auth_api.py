from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from starlette.requests import Request

from storefront.api.deps import client_ip, get_rate_limiter
from storefront.data.models.user import UserModel
from storefront.main import app
from storefront.services.notification_service import NotificationService
from storefront.services.rate_limiter import InMemoryRateLimiter
from storefront.utils.security import create_access_token, verify_password

PASSWORD = "secret123"


class BrokenRateLimiter(InMemoryRateLimiter):
    def hit(self, key):
        raise KeyError("limiter bug")

    def reset(self, key):
        raise KeyError("limiter bug")


def _request(headers, host="5.6.7.8"):
    return Request({
        "type": "http",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": (host, 40000),
    })


def _register(client, **overrides):
    body = {"email": "bia@example.com", "password": PASSWORD, "first_name": "Bia"}
    body.update(overrides)
    return client.post("/api/auth/register", json=body)


class TestRegister:
    def test_register_returns_user_and_token(self, client):
        response = _register(client)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["user"]["email"] == "bia@example.com"
        assert data["user"]["role"] == "user"
        assert "password_hash" not in data["user"]
        assert data["token"]

    def test_duplicate_email(self, client):
        _register(client)

        response = _register(client, email="BIA@example.com")

        assert response.status_code == 409
        assert response.json()["success"] is False

    def test_concurrent_registration_is_conflict(self, client):
        _register(client)

        # second request passed the e-mail check before the first one committed
        with patch("storefront.repos.user_repo.UserRepo.get_by_email", return_value=None):
            response = _register(client)

        assert response.status_code == 409
        assert response.json()["message"] == "This e-mail is already registered"

    def test_validation_errors_are_listed(self, client):
        response = _register(client, email="not-an-email", password="123")

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert {e["field"] for e in body["errors"]} == {"email", "password"}

    def test_register_migrates_session_cart(self, client, make_product):
        product = make_product()
        client.post("/api/cart/items", json={"product_id": product.id}, headers={"X-Session-ID": "session_reg"})

        token = _register(client, session_id="session_reg").json()["data"]["token"]

        cart = client.get("/api/cart", headers={"Authorization": f"Bearer {token}"}).json()["data"]
        assert len(cart) == 1


class TestLogin:
    def test_login(self, client, make_user):
        make_user()

        response = client.post("/api/auth/login", json={"email": "ana@example.com", "password": PASSWORD})

        assert response.status_code == 200
        assert response.json()["data"]["user"]["last_login"] is not None

    def test_wrong_password(self, client, make_user):
        make_user()

        response = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "wrong"})

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid credentials"}

    def test_inactive_user_cannot_login(self, client, make_user):
        make_user(is_active=False)

        response = client.post("/api/auth/login", json={"email": "ana@example.com", "password": PASSWORD})

        assert response.status_code == 401

    def test_rate_limited_after_five_attempts(self, client, make_user):
        make_user()
        body = {"email": "ana@example.com", "password": "wrong"}

        statuses = [client.post("/api/auth/login", json=body).status_code for _ in range(6)]

        assert statuses == [401] * 5 + [429]

    def test_forwarded_for_does_not_bypass_limit(self, client, make_user):
        make_user()
        body = {"email": "ana@example.com", "password": "wrong"}

        statuses = [
            client.post("/api/auth/login", json=body, headers={"X-Forwarded-For": f"10.0.0.{i}"}).status_code
            for i in range(6)
        ]

        assert statuses == [401] * 5 + [429]

    def test_broken_limiter_allows_login(self, client, make_user):
        make_user()
        app.dependency_overrides[get_rate_limiter] = lambda: BrokenRateLimiter()

        response = client.post("/api/auth/login", json={"email": "ana@example.com", "password": PASSWORD})

        assert response.status_code == 200

    def test_successful_login_resets_attempts(self, client, make_user):
        make_user()
        for _ in range(4):
            client.post("/api/auth/login", json={"email": "ana@example.com", "password": "wrong"})
        client.post("/api/auth/login", json={"email": "ana@example.com", "password": PASSWORD})

        response = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "wrong"})

        assert response.status_code == 401

    def test_login_moves_session_cart_to_user(self, client, make_user, make_product):
        make_user()
        a = make_product()
        b = make_product(title="Mouse")
        session = {"X-Session-ID": "session_login"}
        client.post("/api/cart/items", json={"product_id": a.id}, headers=session)
        client.post("/api/cart/items", json={"product_id": b.id, "quantity": 2}, headers=session)

        token = client.post(
            "/api/auth/login",
            json={"email": "ana@example.com", "password": PASSWORD, "session_id": "session_login"},
        ).json()["data"]["token"]

        user_cart = client.get("/api/cart", headers={"Authorization": f"Bearer {token}"}).json()["data"]
        assert len(user_cart) == 2
        assert client.get("/api/cart", headers=session).json()["data"] == []

    def test_migration_failure_does_not_fail_login(self, client, make_user):
        from sqlalchemy.exc import OperationalError

        make_user()
        with patch(
            "storefront.services.cart_service.CartService.migrate_session_cart",
            side_effect=OperationalError("UPDATE cart_items", {}, Exception("boom")),
        ):
            response = client.post(
                "/api/auth/login",
                json={"email": "ana@example.com", "password": PASSWORD, "session_id": "session_x"},
            )

        assert response.status_code == 200


class TestAuthenticatedRoutes:
    def test_me_requires_token(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_me_with_bad_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 403

    def test_expired_token(self, client, make_user):
        user = make_user()
        token = create_access_token({"id": user.id}, expires_minutes=-1)

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 403

    def test_me(self, client, make_user, auth_headers):
        user = make_user()

        response = client.get("/api/auth/me", headers=auth_headers(user))

        assert response.json()["data"]["user"]["id"] == user.id

    def test_update_profile(self, client, make_user, auth_headers):
        user = make_user()

        response = client.put(
            "/api/auth/profile",
            json={"first_name": "Ana Maria", "phone": "11999990000"},
            headers=auth_headers(user),
        )

        assert response.status_code == 200
        assert response.json()["data"]["user"]["first_name"] == "Ana Maria"

    def test_change_password(self, client, db, make_user, auth_headers):
        user = make_user()

        response = client.put(
            "/api/auth/change-password",
            json={"current_password": PASSWORD, "new_password": "newsecret"},
            headers=auth_headers(user),
        )

        assert response.status_code == 200
        db.expire_all()
        assert verify_password("newsecret", db.get(UserModel, user.id).password_hash)

    def test_change_password_wrong_current(self, client, make_user, auth_headers):
        user = make_user()

        response = client.put(
            "/api/auth/change-password",
            json={"current_password": "wrong", "new_password": "newsecret"},
            headers=auth_headers(user),
        )

        assert response.status_code == 400

    def test_deactivate_account(self, client, make_user, auth_headers):
        user = make_user()
        headers = auth_headers(user)

        response = client.request("DELETE", "/api/auth/account", json={"password": PASSWORD}, headers=headers)

        assert response.status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 403

    def test_verify_token(self, client, make_user):
        user = make_user()
        token = create_access_token({"id": user.id, "email": user.email, "role": user.role})

        assert client.post("/api/auth/verify-token", json={"token": token}).status_code == 200
        assert client.post("/api/auth/verify-token", json={"token": "bad"}).status_code == 401


class TestPasswordReset:
    def test_unknown_email_gets_same_answer(self, client):
        response = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_full_reset_flow(self, client, db, make_user):
        user = make_user()
        with patch.object(NotificationService, "send_password_reset") as send:
            client.post("/api/auth/forgot-password", json={"email": "ana@example.com"})

        send.assert_called_once()
        email, token = send.call_args.args
        assert email == "ana@example.com"

        assert client.get(f"/api/auth/verify-reset-token/{token}").json()["data"] == {"email": "ana@example.com"}

        response = client.post("/api/auth/reset-password", json={"token": token, "password": "brandnew"})
        assert response.status_code == 200

        db.expire_all()
        stored = db.get(UserModel, user.id)
        assert stored.reset_token is None
        assert verify_password("brandnew", stored.password_hash)
        # token is single use
        assert client.post("/api/auth/reset-password", json={"token": token, "password": "again1"}).status_code == 400

    def test_expired_reset_token(self, client, db, make_user):
        make_user(
            reset_token="expired-token",
            reset_token_expires=datetime.now(timezone.utc) - timedelta(minutes=1),
        )

        assert client.get("/api/auth/verify-reset-token/expired-token").status_code == 400


def test_logout_requires_token(client, make_user, auth_headers):
    assert client.post("/api/auth/logout").status_code == 401
    assert client.post("/api/auth/logout", headers=auth_headers(make_user())).json()["success"] is True


def test_health(client):
    assert client.get("/health").json()["status"] == "OK"


def test_client_ip_ignores_forwarded_for_by_default():
    request = _request({"X-Forwarded-For": "1.2.3.4"})

    assert client_ip(request, trust_proxy=False) == "5.6.7.8"
    assert client_ip(request, trust_proxy=True) == "1.2.3.4"
