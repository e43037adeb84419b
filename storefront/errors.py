"""
Storefront exceptions and customer-facing error messages.

The pricing engine and the status machine never raise for bad numbers or
unknown statuses. Exceptions are reserved for the caller-side checks around
them (order submission, courier quotes, applying a status change).

Courier errors arrive as raw API text such as "[no_couriers_available] ...".
get_friendly_delivery_error() maps those to messages a customer can act on.
"""

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)


class StorefrontError(Exception):
    """Base class for storefront errors."""


class OrderSubmissionError(StorefrontError):
    """Raised when a checkout fails a pre-placement check."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class InvalidTransitionError(StorefrontError):
    """Raised when a status change is refused by the state machine."""

    def __init__(self, current: str, target: str, reason: str):
        self.current = current
        self.target = target
        self.reason = reason
        super().__init__(f"Cannot move order from {current} to {target}: {reason}")


class CartNotFoundError(StorefrontError):
    """Raised when a cart id belongs to another tenant."""

    def __init__(self, cart_id: str):
        self.cart_id = cart_id
        super().__init__(f"Cart {cart_id} not found")


class InvalidQuantityError(StorefrontError, ValueError):
    """Raised when a cart line is added with an unusable quantity."""

    def __init__(self, quantity, unit: str, minimum: float):
        self.quantity = quantity
        self.unit = unit
        self.minimum = minimum
        super().__init__(f"Quantity must be at least {minimum:g} {unit}")


class DeliveryQuoteError(StorefrontError):
    """Raised when the courier quote endpoint fails or returns garbage."""

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        self.code = code
        self.status_code = status_code
        super().__init__(f"[{code}] {message}" if code else message)


# =============================================================================
# Friendly Messages
# =============================================================================
# Order matters: substring matching returns the first code found.

COURIER_ERROR_MESSAGES = {
    # Authorization/payment
    "authorization_hold": "Delivery service is temporarily unavailable. Please choose pickup or try again later.",
    "payment_method_invalid": "There was a payment issue with delivery. Please choose pickup or try again.",
    "insufficient_funds": "Unable to process delivery payment. Please choose pickup or contact support.",

    # Address/location
    "address_undeliverable": "We cannot deliver to this address. Please check the address or choose pickup.",
    "address_undeliverable_limited_couriers": (
        "Delivery is currently unavailable due to high demand or weather conditions. "
        "Please try again later or choose pickup."
    ),
    "invalid_address": "The delivery address seems invalid. Please check the street and zip code.",
    "dropoff_address_undeliverable": "We cannot deliver to this address. Please check the address or choose pickup.",
    "pickup_address_invalid": "Store address issue. Please contact support or choose pickup.",

    # Quotes
    "quote_expired": "The delivery quote has expired. Please try again.",
    "invalid_quote": "The delivery quote is no longer valid. Please refresh and try again.",

    # Courier availability
    "no_couriers_available": "All delivery drivers are currently busy. Please try again in a few minutes or choose pickup.",
    "couriers_busy": "All delivery drivers are currently busy. Please try again in a few minutes or choose pickup.",
    "no_couriers": "No delivery drivers available right now. Please try again later or choose pickup.",

    # Distance
    "distance_too_far": "Your address is outside our delivery range. Please choose pickup instead.",
    "out_of_range": "Your address is outside our delivery range. Please choose pickup instead.",
    "dropoff_too_far": "Your address is too far for delivery. Please choose pickup instead.",

    # Store
    "store_closed": "We're not currently accepting delivery orders. Please try pickup or come back later.",
    "merchant_not_accepting": "We're not currently accepting delivery orders. Please try pickup or come back later.",

    # Items
    "manifest_invalid": "There was an issue with your order items. Please try again.",
    "order_too_large": "Your order is too large for delivery. Please contact us for other options.",
}

_CODE_PATTERN = re.compile(r"\[([^\]]+)\]")

DELIVERY_FALLBACK_MESSAGE = "Something went wrong with delivery. Please try again or choose pickup."

_CONNECTION_MARKERS = (
    "quote failed",
    "delivery failed",
    "auth failed",
    "request failed",
    "502",
    "500",
    "http ",
)


def _message_of(error) -> str:
    if isinstance(error, BaseException):
        return str(error)
    return "" if error is None else str(error)


def get_friendly_delivery_error(error) -> str:
    """
    Convert a raw courier/delivery error into a customer-facing message.

    Lookup order:
    1. Bracketed error code ("[quote_expired] ...")
    2. Any known code appearing in the message
    3. Dispatch / address-parsing / connection failures
    4. The message itself when it is already short and clean
    5. Generic fallback
    """
    message = _message_of(error)
    lower = message.lower()

    logger.info("Raw delivery error: %s", message)

    match = _CODE_PATTERN.search(message)
    if match:
        friendly = COURIER_ERROR_MESSAGES.get(match.group(1).lower())
        if friendly:
            return friendly

    for code, friendly in COURIER_ERROR_MESSAGES.items():
        if code in lower:
            return friendly

    if "failed to dispatch courier" in lower or "courier dispatch" in lower:
        return "We couldn't find a driver for your delivery right now. Please try again or choose pickup."

    if "fieldconverter error" in lower or "field converter" in lower:
        return "The delivery address couldn't be processed. Please check and try again."

    if "{" in message or any(marker in lower for marker in _CONNECTION_MARKERS):
        return "We're having trouble connecting to our delivery service. Please try again or choose pickup."

    if "Error:" not in message and len(message) < 150:
        return message

    return DELIVERY_FALLBACK_MESSAGE


def get_friendly_order_error(error) -> str:
    """
    Convert a raw order placement error into a customer-facing message.

    Delivery errors are checked first; then payment, inventory and server
    failures.
    """
    message = _message_of(error)

    delivery_message = get_friendly_delivery_error(message)
    if delivery_message not in (message, DELIVERY_FALLBACK_MESSAGE):
        return delivery_message

    if "payment" in message.lower():
        if "declined" in message:
            return "Your payment was declined. Please try a different payment method."
        if "expired" in message:
            return "Your payment session expired. Please try again."
        if "insufficient" in message:
            return "Insufficient funds. Please try a different payment method."
        return "There was a problem processing your payment. Please try again."

    if "out of stock" in message or "unavailable" in message:
        return "Some items in your cart are no longer available. Please review your cart."

    if "cart is empty" in message:
        return "Your cart is empty. Please add items before checking out."

    if "500" in message or "server error" in message:
        return "We're experiencing technical difficulties. Please try again in a moment."

    if "timeout" in message or "timed out" in message:
        return "The request took too long. Please check your connection and try again."

    if "{" not in message and "Error:" not in message and len(message) < 200:
        return message

    return "Something went wrong placing your order. Please try again."
