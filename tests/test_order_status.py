"""Tests for staff status updates and customer cancel/refund."""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from models.order import Order, OrderTracking
from services.order_status import VALID_STATUSES


def _set_status(db, order_id, status):
    order = db.get(Order, order_id)
    order.status = status
    db.commit()


def _tracking(db, order_id):
    db.expire_all()
    return db.query(OrderTracking).filter(OrderTracking.order_id == order_id).order_by(OrderTracking.id).all()


class TestUpdateStatus:
    def test_delivered_sets_timestamp_and_entry(self, client, db, placed_order, florist_headers):
        order_id = placed_order["order_id"]
        _set_status(db, order_id, "out_for_delivery")

        response = client.patch(f"/orders/{order_id}/status", json={"status": "delivered"},
                                headers=florist_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Order status updated to delivered"
        assert data["order"]["status"] == "delivered"
        assert data["order"]["delivered_at"] is not None

        entries = _tracking(db, order_id)
        assert entries[-1].status == "delivered"
        assert entries[-1].description == "Order has been delivered"

    def test_notes_replace_default_description(self, client, db, placed_order, admin, admin_headers):
        order_id = placed_order["order_id"]
        response = client.patch(
            f"/orders/{order_id}/status",
            json={"status": "preparing", "notes": "Sourcing extra peonies", "tracking_number": "TRK-42"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["order"]["tracking_number"] == "TRK-42"
        entry = _tracking(db, order_id)[-1]
        assert entry.description == "Sourcing extra peonies"
        assert entry.created_by == admin.id

    @pytest.mark.parametrize("status", VALID_STATUSES)
    def test_each_update_appends_one_entry(self, client, db, placed_order, admin_headers, status):
        order_id = placed_order["order_id"]
        before = len(_tracking(db, order_id))
        response = client.patch(f"/orders/{order_id}/status", json={"status": status}, headers=admin_headers)
        assert response.status_code == 200
        entries = _tracking(db, order_id)
        assert len(entries) == before + 1
        assert entries[-1].status == status

    def test_invalid_status_changes_nothing(self, client, db, placed_order, admin_headers):
        order_id = placed_order["order_id"]
        before = len(_tracking(db, order_id))
        response = client.patch(f"/orders/{order_id}/status", json={"status": "shipped"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Invalid status. Valid statuses: pending")
        assert db.get(Order, order_id).status == "confirmed"
        assert len(_tracking(db, order_id)) == before

    def test_customer_is_forbidden(self, client, db, placed_order, customer_headers):
        order_id = placed_order["order_id"]
        response = client.patch(f"/orders/{order_id}/status", json={"status": "delivered"},
                                headers=customer_headers)
        assert response.status_code == 403
        assert db.get(Order, order_id).status == "confirmed"

    def test_missing_order(self, client, admin_headers):
        response = client.patch("/orders/999/status", json={"status": "delivered"}, headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Order not found"

    def test_requires_token(self, client, placed_order):
        response = client.patch(f"/orders/{placed_order['order_id']}/status", json={"status": "delivered"})
        assert response.status_code == 401

    def test_bad_token(self, client, placed_order):
        response = client.patch(
            f"/orders/{placed_order['order_id']}/status",
            json={"status": "delivered"},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid authentication"


class TestCancelOrder:
    def test_confirmed_order_can_be_cancelled(self, client, db, placed_order, customer_headers):
        order_id = placed_order["order_id"]
        response = client.post(f"/orders/{order_id}/cancel", json={"reason": "Wrong date"},
                                headers=customer_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "cancelled"
        assert data["cancellation_reason"] == "Wrong date"

        entry = _tracking(db, order_id)[-1]
        assert entry.status == "cancelled"
        assert entry.description == "Order cancelled by customer"

    def test_cancel_stands_when_audit_write_fails(self, client, db, placed_order, customer_headers, monkeypatch):
        import routes.orders

        def _fail(*args, **kwargs):
            raise SQLAlchemyError("logs table locked")

        monkeypatch.setattr(routes.orders, "write_log", _fail)
        order_id = placed_order["order_id"]
        response = client.post(f"/orders/{order_id}/cancel", json={}, headers=customer_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        db.expire_all()
        assert db.get(Order, order_id).status == "cancelled"

    def test_delivered_order_cannot_be_cancelled(self, client, db, placed_order, customer_headers):
        order_id = placed_order["order_id"]
        _set_status(db, order_id, "delivered")
        response = client.post(f"/orders/{order_id}/cancel", json={}, headers=customer_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Order cannot be cancelled"
        db.expire_all()
        assert db.get(Order, order_id).status == "delivered"

    def test_other_customer_cannot_cancel(self, client, placed_order, other_headers):
        response = client.post(f"/orders/{placed_order['order_id']}/cancel", json={}, headers=other_headers)
        assert response.status_code == 403


class TestRequestRefund:
    def test_refund_needs_finished_order(self, client, placed_order, customer_headers):
        response = client.post(f"/orders/{placed_order['order_id']}/refund", json={}, headers=customer_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Order must be delivered or cancelled to request refund"

    def test_refund_of_delivered_order(self, client, db, placed_order, customer_headers):
        order_id = placed_order["order_id"]
        _set_status(db, order_id, "delivered")
        response = client.post(f"/orders/{order_id}/refund", json={"reason": "Wilted"}, headers=customer_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "delivered"
        assert data["refund_status"] == "requested"
        assert data["refund_amount"] == pytest.approx(38.5)

        entry = _tracking(db, order_id)[-1]
        assert entry.status == "refund_requested"
        assert entry.description == "Refund requested for 38.50 USD"

    def test_refund_amount_capped_at_total(self, client, db, placed_order, customer_headers):
        order_id = placed_order["order_id"]
        _set_status(db, order_id, "cancelled")
        response = client.post(f"/orders/{order_id}/refund", json={"amount": 500}, headers=customer_headers)
        assert response.status_code == 200
        assert response.json()["refund_amount"] == pytest.approx(38.5)
