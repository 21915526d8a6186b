"""Tests for order placement."""

import re

import pytest
from sqlalchemy.exc import SQLAlchemyError

from conftest import order_payload, make_product
from models.cart import CartItem
from models.order import Order, OrderItem, OrderTracking
import services.orders as order_service


class TestPlaceOrder:
    def test_two_item_order_succeeds(self, client, db, customer_headers, roses, tulips):
        response = client.post(
            "/orders",
            json=order_payload(
                [{"product_id": roses.id, "quantity": 2}, {"product_id": tulips.id, "quantity": 1}],
                subtotal=35.0, tax=3.5,
            ),
            headers=customer_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Order placed successfully"
        assert re.fullmatch(r"PP-\d+-[A-Z0-9]{7}", data["order_number"])

        order = db.get(Order, data["order_id"])
        assert order.status == "confirmed"
        assert order.payment_status == "paid"
        assert order.total_amount == pytest.approx(38.5)
        assert order.billing_address == order.delivery_address
        assert order.estimated_delivery is not None
        assert len(order.items) == 2

        db.refresh(roses)
        db.refresh(tulips)
        assert roses.stock_quantity == 3
        assert tulips.stock_quantity == 2

        tracking = db.query(OrderTracking).filter(OrderTracking.order_id == order.id).all()
        assert [t.status for t in tracking] == ["confirmed"]
        assert tracking[0].description == "Order confirmed and payment received"

    def test_insufficient_stock_creates_nothing(self, client, db, customer_headers, tulips):
        response = client.post(
            "/orders",
            json=order_payload([{"product_id": tulips.id, "quantity": 5}], subtotal=75.0),
            headers=customer_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Insufficient stock for Tulip Mix. Available: 3"
        assert db.query(Order).count() == 0
        db.refresh(tulips)
        assert tulips.stock_quantity == 3

    def test_repeated_lines_are_summed_for_stock_check(self, client, db, customer_headers, tulips):
        response = client.post(
            "/orders",
            json=order_payload(
                [{"product_id": tulips.id, "quantity": 2}, {"product_id": tulips.id, "quantity": 2}],
                subtotal=60.0,
            ),
            headers=customer_headers,
        )
        assert response.status_code == 400
        assert "Available: 3" in response.json()["detail"]
        assert db.query(Order).count() == 0

    def test_empty_order_rejected(self, client, db, customer_headers):
        response = client.post("/orders", json=order_payload([], subtotal=0), headers=customer_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "No items in order"
        assert db.query(Order).count() == 0

    def test_unknown_product_rejected(self, client, db, customer_headers):
        response = client.post(
            "/orders",
            json=order_payload([{"product_id": 999, "quantity": 1}], subtotal=10.0),
            headers=customer_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Product 999 not found"

    def test_inactive_product_rejected(self, client, db, customer_headers):
        product = make_product(db, "Retired Lilies", 20.0, 10, is_active=False)
        response = client.post(
            "/orders",
            json=order_payload([{"product_id": product.id, "quantity": 1}], subtotal=20.0),
            headers=customer_headers,
        )
        assert response.status_code == 400
        assert db.query(Order).count() == 0

    def test_requires_authentication(self, client, roses):
        response = client.post(
            "/orders", json=order_payload([{"product_id": roses.id, "quantity": 1}], subtotal=10.0)
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Authorization required"

    def test_missing_fields_rejected(self, client, customer_headers):
        response = client.post("/orders", json={"items": []}, headers=customer_headers)
        assert response.status_code == 400

    def test_subtotal_mismatch_rejected(self, client, db, customer_headers, roses):
        response = client.post(
            "/orders",
            json=order_payload([{"product_id": roses.id, "quantity": 2}], subtotal=5.0),
            headers=customer_headers,
        )
        assert response.status_code == 400
        assert db.query(Order).count() == 0

    def test_total_mismatch_rejected(self, client, db, customer_headers, roses):
        response = client.post(
            "/orders",
            json=order_payload([{"product_id": roses.id, "quantity": 1}], subtotal=10.0, total_amount=99.0),
            headers=customer_headers,
        )
        assert response.status_code == 400
        assert db.query(Order).count() == 0

    def test_catalog_price_wins_over_client_price(self, client, db, customer_headers, roses):
        response = client.post(
            "/orders",
            json=order_payload([{"product_id": roses.id, "quantity": 1, "unit_price": 0.01}], subtotal=10.0),
            headers=customer_headers,
        )
        assert response.status_code == 200
        item = db.query(OrderItem).one()
        assert item.unit_price == 10.0
        assert item.total_price == 10.0

    def test_custom_bouquet_item(self, client, db, customer_headers):
        bouquet = {"flowers": [{"name": "Peony", "count": 5}], "wrap": "kraft", "ribbon": "ivory"}
        response = client.post(
            "/orders",
            json=order_payload(
                [{"quantity": 1, "unit_price": 55.0, "custom_bouquet_data": bouquet}], subtotal=55.0
            ),
            headers=customer_headers,
        )
        assert response.status_code == 200
        item = db.query(OrderItem).one()
        assert item.product_id is None
        assert item.product_name == "Custom Bouquet"
        assert item.custom_bouquet_data == bouquet

    def test_custom_item_without_price_rejected(self, client, customer_headers):
        response = client.post(
            "/orders",
            json=order_payload([{"quantity": 1, "custom_bouquet_data": {"wrap": "kraft"}}], subtotal=10.0),
            headers=customer_headers,
        )
        assert response.status_code == 400

    def test_cart_is_emptied(self, client, db, customer, customer_headers, roses):
        client.post("/cart/items", json={"product_id": roses.id, "quantity": 1}, headers=customer_headers)
        assert db.query(CartItem).filter(CartItem.user_id == customer.id).count() == 1

        response = client.post(
            "/orders",
            json=order_payload([{"product_id": roses.id, "quantity": 1}], subtotal=10.0),
            headers=customer_headers,
        )
        assert response.status_code == 200
        assert db.query(CartItem).filter(CartItem.user_id == customer.id).count() == 0

    def test_stock_floor_at_zero(self, db, roses):
        from services.stock import decrement_stock

        assert decrement_stock(db, roses.id, 8) == 0
        db.refresh(roses)
        assert roses.stock_quantity == 0

    def test_item_insert_failure_removes_order(self, client, db, customer_headers, roses, monkeypatch):
        def _fail(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(order_service, "_insert_items", _fail)
        response = client.post(
            "/orders",
            json=order_payload([{"product_id": roses.id, "quantity": 1}], subtotal=10.0),
            headers=customer_headers,
        )
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to create order items"
        assert db.query(Order).count() == 0
        db.refresh(roses)
        assert roses.stock_quantity == 5

    def test_order_stands_when_confirmation_entry_fails(self, client, db, customer_headers, roses, monkeypatch):
        def _fail(*args, **kwargs):
            raise SQLAlchemyError("tracking table locked")

        monkeypatch.setattr(order_service, "OrderTracking", _fail)
        response = client.post(
            "/orders",
            json=order_payload([{"product_id": roses.id, "quantity": 1}], subtotal=10.0),
            headers=customer_headers,
        )
        assert response.status_code == 200
        assert db.get(Order, response.json()["order_id"]).status == "confirmed"
        assert db.query(OrderTracking).count() == 0
        db.refresh(roses)
        assert roses.stock_quantity == 4

    def test_stock_failure_for_one_product_keeps_order(self, client, db, customer_headers, roses, tulips,
                                                      monkeypatch):
        roses_id = roses.id
        real_decrement = order_service.decrement_stock

        def _decrement(session, product_id, quantity):
            if product_id == roses_id:
                raise SQLAlchemyError("row locked")
            return real_decrement(session, product_id, quantity)

        monkeypatch.setattr(order_service, "decrement_stock", _decrement)
        response = client.post(
            "/orders",
            json=order_payload(
                [{"product_id": roses.id, "quantity": 2}, {"product_id": tulips.id, "quantity": 1}],
                subtotal=35.0,
            ),
            headers=customer_headers,
        )
        assert response.status_code == 200
        order = db.get(Order, response.json()["order_id"])
        assert order is not None
        assert len(order.items) == 2

        db.refresh(roses)
        db.refresh(tulips)
        assert roses.stock_quantity == 5
        assert tulips.stock_quantity == 2

    def test_cart_clear_failure_keeps_order(self, client, db, customer, customer_headers, roses, monkeypatch):
        client.post("/cart/items", json={"product_id": roses.id, "quantity": 1}, headers=customer_headers)

        def _fail_clear(self):
            raise SQLAlchemyError("cart table locked")

        monkeypatch.setattr(order_service.ServerCart, "clear", _fail_clear)
        response = client.post(
            "/orders",
            json=order_payload([{"product_id": roses.id, "quantity": 1}], subtotal=10.0),
            headers=customer_headers,
        )
        assert response.status_code == 200
        assert db.query(Order).count() == 1
        assert db.query(CartItem).filter(CartItem.user_id == customer.id).count() == 1
        db.refresh(roses)
        assert roses.stock_quantity == 4


class FakeEmailClient:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    @property
    def enabled(self):
        return True

    async def send_email(self, to, subject, html):
        if self.fail:
            raise RuntimeError("smtp unreachable")
        self.sent.append({"to": to, "subject": subject, "html": html})
        return {"id": "email_1"}


class TestConfirmationEmail:
    def test_email_sent_after_placement(self, client, customer_headers, roses, monkeypatch):
        import utils.email_client

        fake = FakeEmailClient()
        monkeypatch.setattr(utils.email_client, "email_client", fake)
        response = client.post(
            "/orders",
            json=order_payload([{"product_id": roses.id, "quantity": 1}], subtotal=10.0,
                               gift_message="Happy <birthday>"),
            headers=customer_headers,
        )
        assert response.status_code == 200
        assert len(fake.sent) == 1
        sent = fake.sent[0]
        assert sent["to"] == ["jane@example.com"]
        assert sent["subject"] == f"Order Confirmed - {response.json()['order_number']}"
        assert "Red Roses" in sent["html"]
        assert "Happy &lt;birthday&gt;" in sent["html"]

    def test_email_failure_does_not_affect_order(self, client, db, customer_headers, roses, monkeypatch):
        import utils.email_client

        monkeypatch.setattr(utils.email_client, "email_client", FakeEmailClient(fail=True))
        response = client.post(
            "/orders",
            json=order_payload([{"product_id": roses.id, "quantity": 1}], subtotal=10.0),
            headers=customer_headers,
        )
        assert response.status_code == 200
        assert db.get(Order, response.json()["order_id"]).status == "confirmed"

    def test_audit_failure_keeps_order_and_email(self, client, db, customer_headers, roses, monkeypatch):
        import routes.orders
        import utils.email_client

        def _fail(*args, **kwargs):
            raise SQLAlchemyError("logs table locked")

        fake = FakeEmailClient()
        monkeypatch.setattr(utils.email_client, "email_client", fake)
        monkeypatch.setattr(routes.orders, "write_log", _fail)
        response = client.post(
            "/orders",
            json=order_payload([{"product_id": roses.id, "quantity": 1}], subtotal=10.0),
            headers=customer_headers,
        )
        assert response.status_code == 200
        assert db.query(Order).count() == 1
        assert len(fake.sent) == 1

    def test_email_skipped_without_api_key(self):
        import asyncio
        from services.notifications import send_order_confirmation

        snapshot = {"order_number": "PP-1-ABCDEFG", "customer_email": "jane@example.com", "items": []}
        assert asyncio.run(send_order_confirmation(snapshot)) is False


class TestListOrders:
    def test_customer_sees_only_own_orders(self, client, placed_order, other_headers, customer_headers):
        assert client.get("/orders", headers=customer_headers).json()["total"] == 1
        assert client.get("/orders", headers=other_headers).json()["total"] == 0

    def test_staff_can_list_all(self, client, placed_order, florist_headers):
        response = client.get("/orders", params={"all": True}, headers=florist_headers)
        assert response.json()["total"] == 1

    def test_other_customer_cannot_read_order(self, client, placed_order, other_headers):
        response = client.get(f"/orders/{placed_order['order_id']}", headers=other_headers)
        assert response.status_code == 404

    def test_owner_reads_order_detail(self, client, placed_order, customer_headers):
        response = client.get(f"/orders/{placed_order['order_id']}", headers=customer_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["order_number"] == placed_order["order_number"]
        assert len(data["items"]) == 2
