"""
Tests for checkout, order tracking, status updates and customer cancel.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from storefront.delivery import DeliveryQuote

CART_ID = "cart-checkout"
CUSTOMER = {"first_name": "Jane", "last_name": "Doe", "phone": "(201) 555-0123", "email": "jane@gmail.com"}
ADDRESS = {"line1": "123 Main St", "city": "Hoboken", "state": "NJ", "zip": "07030"}


def _fill_cart(client, fulfillment="pickup"):
    client.post(f"/cart/{CART_ID}/items", json={
        "sku": "bagel", "name": "Plain Bagel", "unit_price_cents": 250, "quantity": 2,
    })
    body = {"fulfillment_type": fulfillment}
    if fulfillment == "delivery":
        body["delivery_address"] = ADDRESS
    client.put(f"/cart/{CART_ID}/fulfillment", json=body)


def _place(client, **overrides):
    body = {"cart_id": CART_ID, "customer": CUSTOMER, "payment_intent_id": "pi_123"}
    body.update(overrides)
    return client.post("/orders", json=body)


@pytest.fixture
def pickup_order(client):
    _fill_cart(client)
    response = _place(client)
    assert response.status_code == 201, response.text
    return response.json()


def _set_status(client, admin_auth, order_id, status, **extra):
    return client.post(f"/orders/{order_id}/status", json={"status": status, **extra}, auth=admin_auth)


class TestPlaceOrder:
    def test_pickup_order(self, pickup_order):
        assert pickup_order["status"] == "created"
        assert pickup_order["status_label"] == "Order Placed"
        assert pickup_order["next_status"] == "accepted"
        assert pickup_order["is_terminal"] is False
        assert pickup_order["fulfillment_type"] == "pickup"
        assert pickup_order["subtotal_cents"] == 500
        assert pickup_order["tax_cents"] == 44
        assert pickup_order["platform_fee_cents"] == 5
        assert pickup_order["total_cents"] == 549
        assert pickup_order["phone"] == "+12015550123"
        assert pickup_order["tenant_slug"] == "default"
        assert pickup_order["items"][0]["quantity_display"] == "2"
        assert [e["to_status"] for e in pickup_order["events"]] == ["created"]

    def test_cart_cleared_but_guest_kept(self, client, pickup_order):
        cart = client.get(f"/cart/{CART_ID}").json()
        assert cart["items"] == []
        assert cart["fulfillment_type"] is None

    def test_order_readable(self, client, pickup_order):
        data = client.get(f"/orders/{pickup_order['id']}").json()
        assert data["total_cents"] == 549
        assert client.get("/orders/9999").status_code == 404

    def test_missing_cart(self, client):
        response = _place(client, cart_id="nope")
        assert response.status_code == 404
        assert response.json()["detail"] == "Cart not found"

    def test_validation_message_returned(self, client):
        _fill_cart(client)
        response = _place(client, customer={**CUSTOMER, "first_name": ""})
        assert response.status_code == 400
        assert response.json()["detail"] == "Please enter your name"

    def test_card_needs_payment_intent(self, client):
        _fill_cart(client)
        response = _place(client, payment_intent_id=None)
        assert response.status_code == 400
        assert response.json()["detail"] == "Payment authorization is still pending"

    def test_pos_order_without_intent(self, client):
        _fill_cart(client)
        response = _place(client, payment_method="pos", payment_intent_id=None)
        assert response.status_code == 201
        assert response.json()["payment_method"] == "pos"

    def test_delivery_without_quote_rejected(self, client):
        _fill_cart(client, fulfillment="delivery")
        response = _place(client)
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Delivery quote not available yet")

    def test_delivery_order(self, client):
        _fill_cart(client, fulfillment="delivery")
        quote = DeliveryQuote(
            quote_id="dq_1",
            fee_cents=599,
            expires_at=datetime.now(timezone.utc) + timedelta(minutes=10),
        )
        with patch("storefront.routes.cart.request_delivery_quote", return_value=quote):
            assert client.post(f"/cart/{CART_ID}/delivery-quote").status_code == 200

        response = _place(client)
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["delivery_fee_cents"] == 599
        assert data["total_cents"] == 500 + 44 + 5 + 599
        assert data["delivery_quote_id"] == "dq_1"
        assert data["delivery_address"]["city"] == "Hoboken"


class TestPaymentIntent:
    def test_application_fee_is_platform_fee(self, client):
        _fill_cart(client)
        data = client.post("/orders/payment-intent", json={"cart_id": CART_ID, "customer": CUSTOMER}).json()
        assert data["amount"] == 549
        assert data["platform_fee"] == 5
        assert data["application_fee_cents"] == 5
        assert data["service_fee"] == 5
        assert data["order_items_summary"] == "2 Plain Bagel"

    def test_empty_cart(self, client):
        client.put(f"/cart/{CART_ID}/tip", json={"percentage": 10})
        response = client.post("/orders/payment-intent", json={"cart_id": CART_ID})
        assert response.status_code == 400

    def test_unknown_cart(self, client):
        assert client.post("/orders/payment-intent", json={"cart_id": "nope"}).status_code == 404


class TestStatusUpdates:
    def test_alias_accepted(self, client, admin_auth, pickup_order):
        response = _set_status(client, admin_auth, pickup_order["id"], "confirmed", source="kitchen")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "accepted"
        assert data["next_status"] == "in_kitchen"
        assert data["events"][-1]["source"] == "kitchen"

    def test_skipping_states_refused(self, client, admin_auth, pickup_order):
        response = _set_status(client, admin_auth, pickup_order["id"], "ready")
        assert response.status_code == 409
        assert response.json() == {
            "detail": "Invalid state transition",
            "current": "created",
            "target": "ready",
        }

    def test_pickup_courier_refused(self, client, admin_auth, pickup_order):
        for status in ("accepted", "in_kitchen", "ready"):
            assert _set_status(client, admin_auth, pickup_order["id"], status).status_code == 200

        response = _set_status(client, admin_auth, pickup_order["id"], "courier_requested")
        assert response.status_code == 409
        assert response.json()["detail"] == "Pickup orders do not use courier"

        data = _set_status(client, admin_auth, pickup_order["id"], "delivered").json()
        assert data["status"] == "delivered"
        assert data["is_terminal"] is True
        assert data["next_status"] is None

    def test_unknown_status_refused(self, client, admin_auth, pickup_order):
        response = _set_status(client, admin_auth, pickup_order["id"], "teleported")
        assert response.status_code == 409
        assert response.json()["detail"] == "Unrecognized status"
        assert client.get(f"/orders/{pickup_order['id']}").json()["status"] == "created"

    def test_requires_admin(self, client, pickup_order):
        response = client.post(f"/orders/{pickup_order['id']}/status", json={"status": "accepted"})
        assert response.status_code == 401

    def test_wrong_password(self, client, pickup_order):
        response = client.post(
            f"/orders/{pickup_order['id']}/status",
            json={"status": "accepted"},
            auth=("testadmin", "wrong"),
        )
        assert response.status_code == 401

    def test_unknown_order(self, client, admin_auth):
        assert _set_status(client, admin_auth, 9999, "accepted").status_code == 404


class TestCustomerCancel:
    def test_cancel_then_cancel_again(self, client, pickup_order):
        response = client.post(f"/orders/{pickup_order['id']}/cancel", json={"reason": "ordered twice"})
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "canceled"
        assert data["events"][-1]["note"] == "ordered twice"

        again = client.post(f"/orders/{pickup_order['id']}/cancel")
        assert again.status_code == 409
        assert again.json()["detail"] == "Already in this state"

    def test_cancel_refused_after_pickup(self, client, admin_auth, pickup_order):
        for status in ("accepted", "in_kitchen", "ready", "picked_up"):
            _set_status(client, admin_auth, pickup_order["id"], status)
        response = client.post(f"/orders/{pickup_order['id']}/cancel")
        assert response.status_code == 409

    def test_cancel_window(self, client, pickup_order):
        data = client.get(f"/orders/{pickup_order['id']}/cancel-window").json()
        assert data["expired"] is False
        assert 170 <= data["remaining_seconds"] <= 180

    def test_cancel_window_closed_for_terminal_order(self, client, pickup_order):
        client.post(f"/orders/{pickup_order['id']}/cancel")
        data = client.get(f"/orders/{pickup_order['id']}/cancel-window").json()
        assert data == {"remaining_seconds": 0, "remaining_ms": 0, "expired": True, "formatted_time": "0:00"}
