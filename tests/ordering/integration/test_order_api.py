"""Integration tests for Product and Order API endpoints via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api.routes import order_router, product_router
from ordering.inventory.ledger import ledger
from ordering.order.order import Order
from protean import current_domain
from protean.integrations.fastapi import register_exception_handlers

SHIPPING = {"street": "14 MG Road", "city": "Kochi", "state": "Kerala", "postal_code": "682016"}


@pytest.fixture()
def client():
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(product_router)
    app.include_router(order_router)
    return TestClient(app)


def _register_product(client, name="Brass Diya", unit_price=100.0, stock=10, min_stock_level=3):
    response = client.post(
        "/products",
        json={
            "name": name,
            "unit_price": unit_price,
            "initial_stock": stock,
            "min_stock_level": min_stock_level,
        },
    )
    assert response.status_code == 201
    return response.json()["product_id"]


def _pos_sale(client, product_id, quantity=1, variant_id=None, **extra):
    line = {"product_id": product_id, "quantity": quantity, "variant_id": variant_id}
    response = client.post("/orders/pos", json={"items": [line], **extra})
    assert response.status_code == 201
    return response.json()


def _checkout(client, product_id, quantity=1, payment_method="cod"):
    return client.post(
        "/orders/checkout",
        json={
            "items": [{"product_id": product_id, "quantity": quantity}],
            "customer": {"name": "Asha Menon", "email": "asha@example.com"},
            "payment_method": payment_method,
            "shipping_address": SHIPPING,
        },
    )


class TestProductEndpoints:
    def test_register_and_fetch(self, client):
        product_id = _register_product(client, stock=7)
        response = client.get(f"/products/{product_id}")
        assert response.status_code == 200
        body = response.json()
        assert body["stock"] == 7
        assert body["low_stock"] is False

    def test_receive_stock(self, client):
        product_id = _register_product(client, stock=2)
        response = client.post(f"/products/{product_id}/stock", json={"kind": "receipt", "quantity": 8})
        assert response.status_code == 200
        assert response.json()["stock"] == 10

    def test_adjustment_below_zero_rejected(self, client):
        product_id = _register_product(client, stock=2)
        response = client.post(
            f"/products/{product_id}/stock",
            json={"kind": "adjustment", "quantity": -5, "reason": "stocktake"},
        )
        assert response.status_code == 400
        assert ledger.available(product_id) == 2

    def test_low_stock_listing(self, client):
        low = _register_product(client, name="Camphor", stock=1, min_stock_level=3)
        _register_product(client, name="Diya", stock=40, min_stock_level=3)
        response = client.get("/products/low-stock")
        assert response.status_code == 200
        assert [p["product_id"] for p in response.json()] == [low]

    def test_add_variant_and_receive_into_it(self, client):
        product_id = _register_product(client, unit_price=300.0, stock=5)
        response = client.post(
            f"/products/{product_id}/variants",
            json={"name": "Large", "unit_price": 450.0, "initial_stock": 2},
        )
        assert response.status_code == 201
        variant = response.json()["variants"][0]
        assert variant["name"] == "Large"
        assert variant["unit_price"] == 450.0
        assert variant["stock"] == 2

        response = client.post(
            f"/products/{product_id}/stock",
            json={"kind": "receipt", "quantity": 3, "variant_id": variant["variant_id"]},
        )
        body = response.json()
        assert body["variants"][0]["stock"] == 5
        assert body["stock"] == 5

    def test_variant_on_unknown_product(self, client):
        response = client.post("/products/missing-product/variants", json={"name": "Large"})
        assert response.status_code == 404

    def test_stock_movements(self, client):
        product_id = _register_product(client, stock=10)
        _pos_sale(client, product_id, quantity=3)

        response = client.get(f"/products/{product_id}/movements")
        assert response.status_code == 200
        body = response.json()
        assert [m["movement_type"] for m in body] == ["reservation", "initial"]
        assert body[0]["change_amount"] == -3
        assert body[0]["new_stock"] == 7


class TestCheckoutEndpoints:
    def test_online_checkout(self, client):
        product_id = _register_product(client, unit_price=500.0, stock=5)
        response = _checkout(client, product_id, quantity=2)

        assert response.status_code == 201
        body = response.json()
        assert body["order_number"].startswith("ORD-")
        assert body["status"] == "pending"
        assert body["payment_status"] == "pending"
        assert body["subtotal"] == 1000.0
        assert body["tax_total"] == 180.0
        assert body["shipping_total"] == 0.0
        assert body["grand_total"] == 1180.0
        assert body["currency"] == "INR"
        assert ledger.available(product_id) == 3

    def test_checkout_without_address_rejected(self, client):
        product_id = _register_product(client)
        response = client.post(
            "/orders/checkout",
            json={
                "items": [{"product_id": product_id, "quantity": 1}],
                "customer": {"name": "Asha Menon", "email": "asha@example.com"},
            },
        )
        assert response.status_code == 400

    def test_pos_sale(self, client):
        product_id = _register_product(client, unit_price=250.0)
        body = _pos_sale(client, product_id, quantity=2, discount=100.0)

        assert body["order_number"].startswith("POS-")
        assert body["customer"]["name"] == "Walk-in Customer"
        assert body["status"] == "confirmed"
        assert body["payment_status"] == "paid"
        assert body["grand_total"] == 400.0

    def test_pos_sale_of_a_variant(self, client):
        product_id = _register_product(client, unit_price=300.0, stock=5)
        variant_id = client.post(
            f"/products/{product_id}/variants",
            json={"name": "Large", "unit_price": 450.0, "initial_stock": 2},
        ).json()["variants"][0]["variant_id"]

        body = _pos_sale(client, product_id, quantity=2, variant_id=variant_id)

        assert body["items"][0]["variant_id"] == variant_id
        assert body["items"][0]["product_name"] == "Brass Diya (Large)"
        assert body["grand_total"] == 900.0
        assert ledger.available(product_id, variant_id=variant_id) == 0
        assert ledger.available(product_id) == 5

    def test_insufficient_stock(self, client):
        product_id = _register_product(client, stock=1)
        response = client.post("/orders/pos", json={"items": [{"product_id": product_id, "quantity": 2}]})

        assert response.status_code == 400
        assert ledger.available(product_id) == 1
        assert current_domain.repository_for(Order)._dao.query.all().total == 0


class TestOrderEndpoints:
    def test_get_order(self, client):
        product_id = _register_product(client)
        order = _pos_sale(client, product_id)
        response = client.get(f"/orders/{order['order_id']}")
        assert response.status_code == 200
        assert response.json()["order_number"] == order["order_number"]

    def test_unknown_order(self, client):
        response = client.get("/orders/missing-order")
        assert response.status_code == 404

    def test_status_flow(self, client):
        product_id = _register_product(client)
        order_id = _checkout(client, product_id).json()["order_id"]

        for status in ("confirmed", "processing", "shipped"):
            response = client.put(f"/orders/{order_id}/status", json={"status": status})
            assert response.status_code == 200
            assert response.json()["status"] == status

    def test_illegal_status_change(self, client):
        product_id = _register_product(client)
        order_id = _checkout(client, product_id).json()["order_id"]
        response = client.put(f"/orders/{order_id}/status", json={"status": "delivered"})
        assert response.status_code == 400
        assert client.get(f"/orders/{order_id}").json()["status"] == "pending"

    def test_payment_status(self, client):
        product_id = _register_product(client)
        order_id = _checkout(client, product_id).json()["order_id"]
        response = client.put(f"/orders/{order_id}/payment-status", json={"payment_status": "paid"})
        assert response.status_code == 200
        assert response.json()["payment_status"] == "paid"

    def test_tracking_number(self, client):
        product_id = _register_product(client)
        order_id = _checkout(client, product_id).json()["order_id"]
        response = client.put(f"/orders/{order_id}/tracking", json={"tracking_number": " DTDC-7781 "})
        assert response.status_code == 200
        assert response.json()["tracking_number"] == "DTDC-7781"

        response = client.put(f"/orders/{order_id}/tracking", json={"tracking_number": None})
        assert response.json()["tracking_number"] is None

    def test_list_with_stats(self, client):
        product_id = _register_product(client, unit_price=100.0, stock=20)
        _pos_sale(client, product_id, quantity=2)
        _checkout(client, product_id)

        response = client.get("/orders", params={"include_stats": True, "page_size": 1})
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert body["total_pages"] == 2
        assert len(body["items"]) == 1
        assert body["stats"]["total_orders"] == 2
        assert body["stats"]["total_revenue"] == 200.0

    def test_list_filters_by_source(self, client):
        product_id = _register_product(client, stock=20)
        _pos_sale(client, product_id)
        _checkout(client, product_id)

        response = client.get("/orders", params={"source": "pos"})
        assert [o["source"] for o in response.json()["items"]] == ["pos"]
        assert response.json()["stats"] is None

    def test_stats_endpoint(self, client):
        product_id = _register_product(client, unit_price=100.0)
        _pos_sale(client, product_id, quantity=3)
        response = client.get("/orders/stats")
        assert response.status_code == 200
        body = response.json()
        assert body["total_revenue"] == 300.0
        assert body["payment_breakdown"]["paid"] == 1
