"""
Tests for the cart endpoints.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from storefront.delivery import DeliveryQuote
from storefront.errors import DeliveryQuoteError
from storefront.fees import FeeConfig
from storefront.tenant import TenantConfig

CART = "/cart/cart-abc"

BAGEL = {"sku": "bagel", "name": "Plain Bagel", "unit_price_cents": 250}
ADDRESS = {"line1": "123 Main St", "city": "Hoboken", "state": "NJ", "zip": "07030"}


def _quote(fee=599):
    return DeliveryQuote(
        quote_id="dq_1",
        fee_cents=fee,
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=10),
    )


def _add(client, item=None, **kwargs):
    body = dict(item or BAGEL)
    body.update(kwargs)
    return client.post(f"{CART}/items", json=body)


def _add_as(client, headers, cart=CART):
    return client.post(f"{cart}/items", json=BAGEL, headers=headers)


class TestCartItems:
    def test_unknown_cart_is_empty(self, client):
        data = client.get("/cart/never-seen").json()
        assert data["cart_id"] == "never-seen"
        assert data["items"] == []
        assert data["totals"]["total"] == 0

    def test_add_merges_identical_lines(self, client):
        assert _add(client).status_code == 201
        data = _add(client, quantity=2).json()

        assert len(data["items"]) == 1
        line = data["items"][0]
        assert line["quantity"] == 3
        assert line["quantity_display"] == "3"
        assert line["line_total_cents"] == 750
        assert data["item_count"] == 3
        assert data["totals"]["subtotal"] == 750

    def test_cart_persists_between_requests(self, client):
        _add(client)
        assert len(client.get(CART).json()["items"]) == 1

    def test_weight_item_display(self, client):
        data = _add(client, {"sku": "lox", "name": "Lox", "unit_price_cents": 3299,
                             "quantity": 0.25, "unit": "pounds"}).json()
        line = data["items"][0]
        assert line["unit"] == "lb"
        assert line["quantity_display"] == "0.25 lb"
        # 3299 * 0.25 = 824.75
        assert line["line_total_cents"] == 825

    def test_update_quantity_and_note(self, client):
        line_id = _add(client).json()["items"][0]["line_id"]
        data = client.patch(f"{CART}/items/{line_id}", json={"quantity": 4, "note": "toasted"}).json()
        assert data["items"][0]["quantity"] == 4
        assert data["items"][0]["note"] == "toasted"

    def test_zero_quantity_removes_line(self, client):
        line_id = _add(client).json()["items"][0]["line_id"]
        data = client.patch(f"{CART}/items/{line_id}", json={"quantity": 0, "note": "ignored"}).json()
        assert data["items"] == []

    def test_update_unknown_line(self, client):
        _add(client)
        response = client.patch(f"{CART}/items/line-missing", json={"quantity": 2})
        assert response.status_code == 404
        assert response.json()["detail"] == "Cart item not found"

    def test_remove_line(self, client):
        line_id = _add(client).json()["items"][0]["line_id"]
        assert client.delete(f"{CART}/items/{line_id}").json()["items"] == []
        assert client.delete(f"{CART}/items/{line_id}").status_code == 404

    def test_negative_quantity_rejected(self, client):
        _add(client, quantity=2)
        response = _add(client, quantity=-5)
        assert response.status_code == 422
        line = client.get(CART).json()["items"][0]
        assert line["quantity"] == 2

    def test_quantity_below_weight_minimum_rejected(self, client):
        response = _add(client, {"sku": "lox", "name": "Lox", "unit_price_cents": 3299,
                                 "quantity": 0.01, "unit": "lb"})
        assert response.status_code == 422
        assert response.json()["detail"] == "Quantity must be at least 0.25 lb"
        assert client.get(CART).json()["items"] == []

    def test_count_quantity_rounded_on_add(self, client):
        data = _add(client, {"sku": "bagel", "name": "Bagel", "unit_price_cents": 300, "quantity": 2.4}).json()
        assert data["items"][0]["quantity"] == 2
        assert data["items"][0]["line_total_cents"] == 600

    def test_delete_cart(self, client):
        _add(client)
        assert client.delete(CART).status_code == 204
        assert client.get(CART).json()["items"] == []
        assert client.delete(CART).status_code == 404


class TestTipAndPromo:
    def test_percentage_tip(self, client):
        _add(client, quantity=4)
        data = client.put(f"{CART}/tip", json={"percentage": 20}).json()
        assert data["tip"]["mode"] == "percent"
        assert data["totals"]["tip"] == 200

    def test_custom_tip_replaces_percentage(self, client):
        _add(client, quantity=4)
        client.put(f"{CART}/tip", json={"percentage": 20})
        data = client.put(f"{CART}/tip", json={"percentage": 20, "custom_cents": 350}).json()
        assert data["tip"] == {"mode": "amount", "percentage": 0, "custom_cents": 350}
        assert data["totals"]["tip"] == 350

    def test_promo_apply_and_remove(self, client):
        _add(client, quantity=4)
        data = client.put(f"{CART}/promo", json={
            "code": "save10", "discount_type": "percentage", "discount_value": 10,
        }).json()
        assert data["promo_code"] == "SAVE10"
        assert data["promo_discount_cents"] == 100
        assert data["totals"]["discount"] == 100
        assert data["totals"]["subtotal"] == 900

        data = client.delete(f"{CART}/promo").json()
        assert data["promo_code"] is None
        assert data["totals"]["discount"] == 0


class TestFulfillment:
    def test_pickup(self, client):
        _add(client)
        data = client.put(f"{CART}/fulfillment", json={"fulfillment_type": "pickup"}).json()
        assert data["fulfillment_type"] == "pickup"
        assert data["totals"]["delivery_fee"] == 0

    def test_delivery_with_client_quote(self, client):
        _add(client)
        data = client.put(f"{CART}/fulfillment", json={
            "fulfillment_type": "delivery",
            "delivery_address": ADDRESS,
            "delivery_quote": {"quote_id": "dq_9", "fee_cents": 650},
        }).json()
        assert data["delivery_address"]["zip"] == "07030"
        assert data["delivery_quote"]["quote_id"] == "dq_9"
        assert data["delivery_quote"]["expired"] is False
        assert data["totals"]["delivery_fee"] == 650

    def test_quote_requires_delivery(self, client):
        response = client.put(f"{CART}/fulfillment", json={
            "fulfillment_type": "pickup",
            "delivery_quote": {"quote_id": "dq_9", "fee_cents": 650},
        })
        assert response.status_code == 400
        assert response.json()["detail"] == "Delivery quote requires delivery fulfillment"

    def test_switching_to_pickup_drops_quote(self, client):
        _add(client)
        client.put(f"{CART}/fulfillment", json={
            "fulfillment_type": "delivery",
            "delivery_address": ADDRESS,
            "delivery_quote": {"quote_id": "dq_9", "fee_cents": 650},
        })
        data = client.put(f"{CART}/fulfillment", json={"fulfillment_type": "pickup"}).json()
        assert data["delivery_quote"] is None
        assert data["totals"]["delivery_fee"] == 0


class TestDeliveryQuoteEndpoint:
    def _delivery_cart(self, client):
        _add(client)
        client.put(f"{CART}/fulfillment", json={"fulfillment_type": "delivery", "delivery_address": ADDRESS})

    def test_quote_fetched_and_cached(self, client):
        self._delivery_cart(client)
        with patch("storefront.routes.cart.request_delivery_quote", return_value=_quote()) as fetch:
            first = client.post(f"{CART}/delivery-quote").json()
            second = client.post(f"{CART}/delivery-quote").json()

        assert fetch.call_count == 1
        assert first["delivery_quote"]["quote_id"] == "dq_1"
        assert second["totals"]["delivery_fee"] == 599
        assert second["totals"]["courier"] == "uber_direct"

    def test_courier_error_is_friendly(self, client):
        self._delivery_cart(client)
        error = DeliveryQuoteError("No drivers", code="no_couriers_available")
        with patch("storefront.routes.cart.request_delivery_quote", side_effect=error):
            response = client.post(f"{CART}/delivery-quote")

        assert response.status_code == 502
        assert "No drivers" not in response.json()["detail"]
        assert "driver" in response.json()["detail"].lower()

    def test_requires_delivery(self, client):
        _add(client)
        response = client.post(f"{CART}/delivery-quote")
        assert response.status_code == 400
        assert response.json()["detail"] == "Choose delivery before requesting a quote"

    def test_requires_complete_address(self, client):
        _add(client)
        client.put(f"{CART}/fulfillment", json={
            "fulfillment_type": "delivery",
            "delivery_address": {"line1": "123 Main St"},
        })
        response = client.post(f"{CART}/delivery-quote")
        assert response.status_code == 400
        assert response.json()["detail"] == "Please enter a complete delivery address"


class TestTenantIsolation:
    OTHER = {"X-Tenant-ID": "other"}

    @pytest.fixture(autouse=True)
    def other_tenant(self, tenant_manager, fee_config):
        tenant_manager.register_tenant(TenantConfig(
            slug="other",
            name="Other Deli",
            port=8101,
            fee_config=FeeConfig(tax_rate=0.5, platform_fee_rate=0.01, delivery_zones=fee_config.delivery_zones),
            store_latitude=40.7433,
            store_longitude=-74.0324,
        ))

    def test_cart_hidden_from_other_tenant(self, client):
        _add(client)
        assert client.get(CART, headers=self.OTHER).status_code == 404
        assert _add_as(client, self.OTHER).status_code == 404
        assert client.put(f"{CART}/tip", json={"percentage": 10}, headers=self.OTHER).status_code == 404

        data = client.get(CART).json()
        assert data["item_count"] == 1
        assert data["totals"]["tax"] == 22

    def test_delete_by_other_tenant_refused(self, client):
        _add(client)
        assert client.delete(CART, headers=self.OTHER).status_code == 404
        assert len(client.get(CART).json()["items"]) == 1

    def test_checkout_by_other_tenant_refused(self, client):
        _add(client)
        client.put(f"{CART}/fulfillment", json={"fulfillment_type": "pickup"})
        customer = {"first_name": "Jane", "last_name": "Doe", "phone": "(201) 555-0123", "email": "jane@gmail.com"}

        response = client.post("/orders", json={
            "cart_id": "cart-abc", "customer": customer, "payment_method": "pos",
        }, headers=self.OTHER)
        assert response.status_code == 404

        response = client.post("/orders/payment-intent", json={"cart_id": "cart-abc"}, headers=self.OTHER)
        assert response.status_code == 404

    def test_same_id_is_separate_cart_for_new_tenant(self, client):
        assert client.get("/cart/fresh", headers=self.OTHER).json()["items"] == []
        _add_as(client, self.OTHER, cart="/cart/fresh")
        assert client.get("/cart/fresh").status_code == 404

    def test_quotes_not_shared_between_tenants(self, client):
        for cart, headers in (("/cart/a", {}), ("/cart/b", self.OTHER)):
            _add_as(client, headers, cart=cart)
            client.put(f"{cart}/fulfillment", json={
                "fulfillment_type": "delivery", "delivery_address": ADDRESS,
            }, headers=headers)

        quotes = [
            DeliveryQuote(quote_id="q1", fee_cents=599, expires_at=datetime.now(timezone.utc) + timedelta(minutes=10)),
            DeliveryQuote(quote_id="q2", fee_cents=725, expires_at=datetime.now(timezone.utc) + timedelta(minutes=10)),
        ]
        with patch("storefront.routes.cart.request_delivery_quote", side_effect=quotes) as fetch:
            first = client.post("/cart/a/delivery-quote").json()
            second = client.post("/cart/b/delivery-quote", headers=self.OTHER).json()

        assert fetch.call_count == 2
        assert first["delivery_quote"]["quote_id"] == "q1"
        assert second["delivery_quote"]["quote_id"] == "q2"
        assert fetch.call_args_list[0].kwargs["pickup_location"] is None
        assert fetch.call_args_list[1].kwargs["tenant_slug"] == "other"
        assert fetch.call_args_list[1].kwargs["pickup_location"] == (40.7433, -74.0324)
