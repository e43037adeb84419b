"""
Tests for customer-facing error messages.
"""

from storefront.errors import (
    COURIER_ERROR_MESSAGES,
    DeliveryQuoteError,
    InvalidTransitionError,
    OrderSubmissionError,
    get_friendly_delivery_error,
    get_friendly_order_error,
)

DELIVERY_FALLBACK = "Something went wrong with delivery. Please try again or choose pickup."
CONNECTION_MESSAGE = "We're having trouble connecting to our delivery service. Please try again or choose pickup."


class TestFriendlyDeliveryError:
    def test_bracketed_code(self):
        message = get_friendly_delivery_error("[quote_expired] Quote dq_1 expired at 12:00")
        assert message == COURIER_ERROR_MESSAGES["quote_expired"]

    def test_exception_with_code(self):
        error = DeliveryQuoteError("Courier said no", code="no_couriers_available")
        assert get_friendly_delivery_error(error) == COURIER_ERROR_MESSAGES["no_couriers_available"]

    def test_code_anywhere_in_message(self):
        message = get_friendly_delivery_error("upstream returned distance_too_far for dropoff")
        assert message == COURIER_ERROR_MESSAGES["distance_too_far"]

    def test_dispatch_failure(self):
        assert "couldn't find a driver" in get_friendly_delivery_error("Failed to dispatch courier")

    def test_field_converter_error(self):
        assert "address couldn't be processed" in get_friendly_delivery_error("FieldConverter error on zip")

    def test_raw_json_hidden(self):
        assert get_friendly_delivery_error('{"kind": "error"}') == CONNECTION_MESSAGE

    def test_http_status_hidden(self):
        assert get_friendly_delivery_error("Upstream returned 502") == CONNECTION_MESSAGE

    def test_short_clean_message_passes_through(self):
        assert get_friendly_delivery_error("Store is closing soon") == "Store is closing soon"

    def test_long_message_falls_back(self):
        assert get_friendly_delivery_error("x" * 200) == DELIVERY_FALLBACK

    def test_error_prefix_falls_back(self):
        assert get_friendly_delivery_error("TypeError: oops") == DELIVERY_FALLBACK


class TestFriendlyOrderError:
    def test_delivery_errors_checked_first(self):
        assert get_friendly_order_error("[store_closed]") == COURIER_ERROR_MESSAGES["store_closed"]

    def test_payment_declined(self):
        assert get_friendly_order_error("Card declined: payment refused") == (
            "Your payment was declined. Please try a different payment method."
        )

    def test_payment_generic(self):
        assert get_friendly_order_error("payment processor hiccup") == (
            "There was a problem processing your payment. Please try again."
        )

    def test_out_of_stock(self):
        assert "no longer available" in get_friendly_order_error("Item out of stock")

    def test_timeout(self):
        assert "took too long" in get_friendly_order_error("Request timed out")

    def test_short_message_passes_through(self):
        assert get_friendly_order_error("Please enter your name") == "Please enter your name"

    def test_fallback(self):
        assert get_friendly_order_error("Error: " + "x" * 300) == (
            "Something went wrong placing your order. Please try again."
        )


class TestExceptions:
    def test_submission_error_fields(self):
        error = OrderSubmissionError("Your cart is empty", field="items")
        assert error.message == "Your cart is empty"
        assert error.field == "items"
        assert str(error) == "Your cart is empty"

    def test_transition_error_message(self):
        error = InvalidTransitionError("ready", "accepted", "Invalid state transition")
        assert error.reason == "Invalid state transition"
        assert "ready" in str(error) and "accepted" in str(error)

    def test_quote_error_without_code(self):
        assert str(DeliveryQuoteError("down")) == "down"
