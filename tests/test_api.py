from storefront.core.config import settings
from storefront.db.models import UserRole, utcnow
from storefront.version import VERSION

from conftest import auth_headers


def test_health_and_info(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/v1/_info").json() == {"service": "storefront", "version": VERSION}


def test_register_login_refresh_logout(client):
    body = {"email": "New@Example.com", "name": "New Person", "password": "S3cret-pass"}
    r = client.post("/auth/register", json=body)
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["user"]["email"] == "new@example.com"
    assert data["user"]["role"] == "CUSTOMER"
    assert data["user"]["cancellation_count"] == 0

    r = client.post("/auth/register", json=body)
    assert r.status_code == 409
    assert r.json()["kind"] == "conflict"

    r = client.post("/auth/login", json={"email": "new@example.com", "password": "wrong-pass"})
    assert r.status_code == 401
    assert r.json() == {"detail": "Invalid email or password", "kind": "unauthorized"}

    r = client.post("/auth/login", json={"email": "new@example.com", "password": "S3cret-pass"})
    assert r.status_code == 200
    tokens = r.json()["tokens"]

    r = client.get("/auth/profile", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert r.json()["name"] == "New Person"

    r = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 200
    rotated = r.json()
    assert rotated["refresh_token"] != tokens["refresh_token"]

    # a used refresh token is revoked
    r = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 401

    assert client.post("/auth/logout", json={"refresh_token": rotated["refresh_token"]}).status_code == 200
    assert client.post("/auth/refresh", json={"refresh_token": rotated["refresh_token"]}).status_code == 401


def test_access_control(client, customer, admin):
    r = client.get("/cart/")
    assert r.status_code == 401
    assert r.json()["kind"] == "unauthorized"

    r = client.get("/cart/", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401

    r = client.post("/products/", headers=auth_headers(customer),
                    json={"name": "X", "price_cents": 100, "stock": 1})
    assert r.status_code == 403
    assert r.json() == {"detail": "Admin only", "kind": "forbidden"}

    r = client.get("/cart/", headers=auth_headers(admin))
    assert r.status_code == 403
    assert r.json()["detail"] == "Customers only"

    assert client.get("/users/", headers=auth_headers(customer)).status_code == 403
    assert len(client.get("/users/", headers=auth_headers(admin)).json()) == 2


def test_catalog_visibility(client, admin, make_product):
    make_product("Shown")
    hidden = make_product("Hidden", is_active=False)

    public = client.get("/products/", params={"include_inactive": True}).json()
    assert [p["name"] for p in public["data"]] == ["Shown"]
    assert public["pagination"]["total"] == 1

    full = client.get("/products/", params={"include_inactive": True}, headers=auth_headers(admin)).json()
    assert full["pagination"]["total"] == 2

    assert client.get(f"/products/{hidden.id}").status_code == 404
    assert client.get(f"/products/{hidden.id}", headers=auth_headers(admin)).status_code == 200

    r = client.get("/products/", params={"limit": 101})
    assert r.status_code == 422


def test_shopping_flow(client, customer, admin, gateway):
    a_hdrs, c_hdrs = auth_headers(admin), auth_headers(customer)

    r = client.post("/products/", headers=a_hdrs,
                    json={"name": "Air Zoom", "description": "Runner", "price_cents": 12999, "stock": 3})
    assert r.status_code == 201, r.text
    product_id = r.json()["id"]

    r = client.post("/cart/items", headers=c_hdrs, json={"product_id": product_id, "quantity": 2})
    assert r.status_code == 201
    assert r.json()["total_cents"] == 25998
    assert client.get("/cart/count", headers=c_hdrs).json() == {"count": 2}
    assert client.get("/cart/validate", headers=c_hdrs).json() == {"is_valid": True, "errors": []}
    assert client.get(f"/cart/check/{product_id}", headers=c_hdrs).json() == {"product_id": product_id, "in_cart": True}

    r = client.post("/orders/", headers=c_hdrs, json={"payment_method": "debit_card"})
    assert r.status_code == 201, r.text
    order = r.json()
    assert order["status"] == "PENDING"
    assert order["total_cents"] == 25998
    assert order["items"][0]["name_snapshot"] == "Air Zoom"
    assert gateway.calls == [(25998, "debit_card")]

    assert client.get(f"/products/{product_id}").json()["stock"] == 1
    assert client.get("/cart/summary", headers=c_hdrs).json() == {"item_count": 0, "total_cents": 0, "is_empty": True}

    listing = client.get("/orders/", headers=c_hdrs).json()
    assert [o["id"] for o in listing["data"]] == [order["id"]]
    assert client.get(f"/orders/{order['id']}", headers=c_hdrs).json()["id"] == order["id"]

    r = client.patch(f"/orders/{order['id']}/cancel", headers=c_hdrs)
    assert r.status_code == 200
    assert r.json()["status"] == "CANCELLED"
    assert client.get(f"/products/{product_id}").json()["stock"] == 3
    assert client.get("/auth/profile", headers=c_hdrs).json()["cancellation_count"] == 1

    r = client.patch(f"/orders/{order['id']}/cancel", headers=c_hdrs)
    assert r.status_code == 400
    assert r.json()["kind"] == "business_rule"


def test_checkout_errors(client, customer, make_product, gateway):
    hdrs = auth_headers(customer)

    r = client.post("/orders/", headers=hdrs)
    assert r.status_code == 400
    assert r.json() == {"detail": "Cannot create order from empty cart", "kind": "empty_cart"}

    product = make_product(stock=2)
    client.post("/cart/items", headers=hdrs, json={"product_id": product.id, "quantity": 2})

    gateway.success = False
    gateway.reason = "Card declined"
    r = client.post("/orders/", headers=hdrs)
    assert r.status_code == 400
    assert r.json() == {"detail": "Payment failed: Card declined", "kind": "payment_failed", "reason": "Card declined"}
    assert client.get("/cart/count", headers=hdrs).json() == {"count": 2}

    gateway.success = True
    r = client.put(f"/cart/items/{product.id}", headers=hdrs, json={"quantity": 3})
    assert r.status_code == 400
    assert r.json()["kind"] == "insufficient_stock"
    assert client.post("/orders/", headers=hdrs).status_code == 201


def test_admin_order_management(client, db, customer, admin, make_product, fill_cart):
    a_hdrs, c_hdrs = auth_headers(admin), auth_headers(customer)
    fill_cart(customer, (make_product(price_cents=700, stock=5), 2))
    order_id = client.post("/orders/", headers=c_hdrs).json()["id"]

    r = client.put(f"/orders/{order_id}/status", headers=c_hdrs, json={"status": "SHIPPED"})
    assert r.status_code == 403

    r = client.put(f"/orders/{order_id}/status", headers=a_hdrs, json={"status": "DELIVERED"})
    assert r.status_code == 400
    assert r.json() == {"detail": "Invalid status transition from PENDING to DELIVERED", "kind": "invalid_status_transition"}

    for status in ("SHIPPED", "DELIVERED"):
        r = client.put(f"/orders/{order_id}/status", headers=a_hdrs, json={"status": status})
        assert r.json()["status"] == status

    assert client.get("/orders/", headers=a_hdrs, params={"status": "DELIVERED"}).json()["pagination"]["total"] == 1
    assert client.get("/orders/", headers=a_hdrs, params={"status": "PENDING"}).json()["data"] == []

    stats = client.get("/orders/admin/statistics", headers=a_hdrs).json()
    assert stats["delivered_orders"] == 1
    assert stats["total_revenue_cents"] == 1400

    assert [o["id"] for o in client.get("/orders/admin/recent", headers=a_hdrs).json()] == [order_id]

    year = str(utcnow().year)
    revenue = client.get("/orders/admin/revenue", headers=a_hdrs, params={"period": "year", "limit": 7}).json()
    assert revenue == [{"date": year, "revenue_cents": 1400, "order_count": 1}]
    assert client.get("/orders/admin/revenue", headers=a_hdrs, params={"period": "decade"}).status_code == 422

    today = utcnow().date().isoformat()
    r = client.get("/orders/filter/date-range", headers=c_hdrs, params={"start_date": today, "end_date": today})
    assert [o["id"] for o in r.json()] == [order_id]
    r = client.get("/orders/filter/date-range", headers=c_hdrs, params={"start_date": "2026-03-12", "end_date": "2026-03-10"})
    assert r.status_code == 422
    assert r.json()["kind"] == "validation_error"


def test_cancellation_limit_over_http(client, make_user, make_product, fill_cart):
    user = make_user(cancellation_count=settings.MAX_CANCELLATION_COUNT)
    fill_cart(user, (make_product(), 1))
    hdrs = auth_headers(user)
    order_id = client.post("/orders/", headers=hdrs).json()["id"]

    r = client.patch(f"/orders/{order_id}/cancel", headers=hdrs)
    assert r.status_code == 403
    assert r.json()["kind"] == "cancellation_limit"


def test_other_customers_orders_are_not_found(client, make_user, make_product, fill_cart):
    owner, other = make_user(), make_user()
    fill_cart(owner, (make_product(), 1))
    order_id = client.post("/orders/", headers=auth_headers(owner)).json()["id"]

    assert client.get(f"/orders/{order_id}", headers=auth_headers(other)).status_code == 404
    assert client.patch(f"/orders/{order_id}/cancel", headers=auth_headers(other)).status_code == 404
    assert client.get("/orders/", headers=auth_headers(other)).json()["data"] == []


def test_deactivated_account_is_refused(client, db, make_user):
    user = make_user(role=UserRole.CUSTOMER)
    user.is_active = False
    db.commit()
    r = client.get("/auth/profile", headers=auth_headers(user))
    assert r.status_code == 403


def test_profile_password_and_logout_all(client, customer):
    body = {"email": "pat@example.com", "name": "Pat", "password": "first-pass-1"}
    tokens = client.post("/auth/register", json=body).json()["tokens"]
    hdrs = {"Authorization": f"Bearer {tokens['access_token']}"}

    r = client.put("/auth/profile", headers=hdrs, json={"email": customer.email})
    assert r.status_code == 409
    r = client.put("/auth/profile", headers=hdrs, json={"name": "Patricia"})
    assert r.json()["name"] == "Patricia"

    r = client.put("/auth/change-password", headers=hdrs,
                   json={"current_password": "wrong-pass", "new_password": "second-pass-2"})
    assert r.status_code == 401
    r = client.put("/auth/change-password", headers=hdrs,
                   json={"current_password": "first-pass-1", "new_password": "second-pass-2"})
    assert r.status_code == 200
    # changing the password revokes outstanding refresh tokens
    assert client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 401

    r = client.post("/auth/login", json={"email": "pat@example.com", "password": "second-pass-2"})
    fresh = r.json()["tokens"]
    assert client.post("/auth/logout-all", headers=hdrs).status_code == 200
    assert client.post("/auth/refresh", json={"refresh_token": fresh["refresh_token"]}).status_code == 401


def test_malformed_requests_carry_an_error_kind(client, customer, make_product):
    r = client.get("/products/", params={"limit": 101})
    assert r.status_code == 422
    assert r.json()["kind"] == "validation_error"
    assert r.json()["detail"][0]["loc"] == ["query", "limit"]

    product = make_product()
    r = client.post("/cart/items", headers=auth_headers(customer), json={"product_id": product.id, "quantity": 0})
    assert r.status_code == 422
    assert r.json()["kind"] == "validation_error"
    assert r.json()["detail"][0]["loc"] == ["body", "quantity"]
