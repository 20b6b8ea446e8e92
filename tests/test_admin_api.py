import pytest

SESSION = {"X-Session-ID": "session_admin_test"}

NEW_PRODUCT = {
    "title": "USB-C dock",
    "description": "Seven port USB-C docking station",
    "price": "249.90",
    "category": "peripherals",
    "brand": "Anker",
    "image": "https://example.com/dock.jpg",
    "stock": 3,
}


@pytest.fixture()
def admin(make_user):
    return make_user(email="admin@example.com", role="admin")


@pytest.fixture()
def headers(admin, auth_headers):
    return auth_headers(admin)


@pytest.fixture()
def placed_order(client, make_product, checkout_data):
    product = make_product(stock=5)
    client.post("/api/cart/items", json={"product_id": product.id}, headers=SESSION)
    return client.post("/api/checkout/create-order", json=checkout_data(), headers=SESSION).json()["data"]


def test_regular_user_is_forbidden(client, make_user, auth_headers):
    headers = auth_headers(make_user())

    response = client.get("/api/admin/dashboard", headers=headers)

    assert response.status_code == 403
    assert response.json()["message"] == "Admin access required"


def test_anonymous_is_unauthorized(client):
    assert client.get("/api/admin/orders").status_code == 401


class TestOrders:
    def test_list_and_detail(self, client, headers, placed_order):
        body = client.get("/api/admin/orders", headers=headers).json()

        assert body["pagination"]["total"] == 1
        assert body["data"][0]["order_number"] == placed_order["order_number"]

        detail = client.get(f"/api/admin/orders/{placed_order['id']}", headers=headers).json()["data"]
        assert detail["payments"] == []
        assert len(detail["items"]) == 1

    def test_search_by_customer(self, client, headers, placed_order):
        assert client.get("/api/admin/orders", params={"search": "souza"}, headers=headers).json()["pagination"]["total"] == 1
        assert client.get("/api/admin/orders", params={"search": "nobody"}, headers=headers).json()["pagination"]["total"] == 0

    def test_paid_confirms_order(self, client, headers, placed_order):
        response = client.put(
            f"/api/admin/orders/{placed_order['id']}/payment-status",
            json={"payment_status": "paid", "payment_id": "manual-1"},
            headers=headers,
        )

        data = response.json()["data"]
        assert data["payment_status"] == "paid"
        assert data["status"] == "confirmed"
        assert data["payment_id"] == "manual-1"

    def test_unknown_status_is_rejected(self, client, headers, placed_order):
        response = client.put(
            f"/api/admin/orders/{placed_order['id']}/status",
            json={"status": "lost"},
            headers=headers,
        )

        assert response.status_code == 400

    def test_ship_requires_paid_and_confirmed(self, client, headers, placed_order):
        response = client.post(
            f"/api/admin/orders/{placed_order['id']}/ship",
            json={"tracking_number": "BR123"},
            headers=headers,
        )

        assert response.status_code == 400

    def test_ship(self, client, headers, placed_order):
        client.put(
            f"/api/admin/orders/{placed_order['id']}/payment-status",
            json={"payment_status": "paid"},
            headers=headers,
        )
        ready = client.get("/api/admin/orders/ready-to-ship", headers=headers).json()["data"]
        assert [o["id"] for o in ready] == [placed_order["id"]]
        assert ready[0]["items_count"] == 1

        response = client.post(
            f"/api/admin/orders/{placed_order['id']}/ship",
            json={"tracking_number": "BR123", "shipping_company": "Correios"},
            headers=headers,
        )

        data = response.json()["data"]
        assert data["status"] == "shipped"
        assert data["tracking_number"] == "BR123"
        assert data["shipped_at"] is not None

    def test_stats_and_pending(self, client, headers, placed_order):
        stats = client.get("/api/admin/orders/stats", params={"period": "7d"}, headers=headers).json()["data"]
        pending = client.get("/api/admin/orders/pending-payment", headers=headers).json()["data"]

        assert stats["period"] == "7d"
        assert stats["total_orders"] == 1
        assert stats["orders_by_payment_status"] == {"pending": 1}
        assert [o["id"] for o in pending] == [placed_order["id"]]


class TestProducts:
    def test_crud(self, client, headers):
        created = client.post("/api/admin/products", json=NEW_PRODUCT, headers=headers)
        assert created.status_code == 201
        product_id = created.json()["data"]["id"]

        updated = client.put(f"/api/admin/products/{product_id}", json={"price": "199.90"}, headers=headers)
        assert updated.json()["data"]["price"] == 199.9

        stock = client.put(f"/api/admin/products/{product_id}/stock", json={"stock": 0}, headers=headers)
        assert stock.json()["data"]["stock"] == 0

        assert client.delete(f"/api/admin/products/{product_id}", headers=headers).status_code == 200
        assert client.delete(f"/api/admin/products/{product_id}", headers=headers).status_code == 404

    def test_empty_update_is_rejected(self, client, headers, make_product):
        product = make_product()

        assert client.put(f"/api/admin/products/{product.id}", json={}, headers=headers).status_code == 400

    def test_invalid_product(self, client, headers):
        response = client.post("/api/admin/products", json={**NEW_PRODUCT, "image": "dock.jpg"}, headers=headers)

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "image"

    def test_filter_in_stock(self, client, headers, make_product):
        make_product(stock=0)
        make_product(title="Mouse", stock=4)

        body = client.get("/api/admin/products", params={"in_stock": True}, headers=headers).json()

        assert [p["title"] for p in body["data"]] == ["Mouse"]


class TestUsers:
    def test_list(self, client, headers, make_user):
        make_user()

        body = client.get("/api/admin/users", params={"role": "user"}, headers=headers).json()

        assert [u["email"] for u in body["data"]] == ["ana@example.com"]

    def test_promote(self, client, headers, make_user):
        user = make_user()

        response = client.put(f"/api/admin/users/{user.id}/role", json={"role": "admin"}, headers=headers)

        assert response.json()["data"] == {"id": user.id, "email": "ana@example.com", "role": "admin"}

    def test_cannot_demote_self(self, client, headers, admin):
        response = client.put(f"/api/admin/users/{admin.id}/role", json={"role": "user"}, headers=headers)

        assert response.status_code == 400

    def test_invalid_role(self, client, headers, make_user):
        user = make_user()

        assert client.put(f"/api/admin/users/{user.id}/role", json={"role": "root"}, headers=headers).status_code == 400


def test_dashboard(client, headers, placed_order):
    data = client.get("/api/admin/dashboard", headers=headers).json()["data"]

    assert data["orders"]["total_orders"] == 1
    assert data["users"]["by_role"] == {"admin": 1}
    assert data["products"]["total"] == 1
    assert data["products"]["low_stock"] == 1
