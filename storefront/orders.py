"""
Order Placement Helpers
=======================

Everything between "the customer pressed Place Order" and "the order service
received a payload":

1. validate_order_submission() runs the checks that must halt placement
   (empty cart, no fulfillment choice, bad contact details, incomplete
   address, missing/expired/stale delivery quote, pending card payment).
   Each failure raises OrderSubmissionError with a message the customer can
   act on.
2. build_order_payload() turns the cart and its fee breakdown into the
   OrderCreate payload.
3. build_payment_intent_payload() builds the payment processor request. Its
   application fee is the breakdown's platform fee, the same number the
   customer saw as the service fee.

Also here: the per-item metadata attached to payments (bounded so it fits
processor metadata limits) and the post-placement cancel window.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import phonenumbers
from email_validator import EmailNotValidError, validate_email
from phonenumbers.phonenumberutil import NumberParseException

from . import config
from .cart import Cart
from .errors import OrderSubmissionError
from .fulfillment import FulfillmentType
from .pricing import CartLineItem, FeeBreakdown, calculate_line_total
from .schemas.orders import (
    CustomerIn,
    DeliveryAddressIn,
    DeliveryQuoteIn,
    OrderCreate,
    OrderItemMetadata,
    OrderItemPayload,
    OrderTotals,
    PaymentBreakdown,
    PaymentIntentRequest,
)
from .schemas.pricing import ModifierIn
from .units import format_quantity_display

logger = logging.getLogger(__name__)

MAX_ORDER_ITEMS = 25
MAX_SUMMARY_LENGTH = 600
MAX_NOTE_LENGTH = 120

# Payment methods that need an authorized payment intent before placement
INTENT_PAYMENT_METHODS = {"card"}


@dataclass
class CustomerContact:
    """Customer details captured at checkout."""
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    email: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_schema(self) -> CustomerIn:
        return CustomerIn(
            first_name=self.first_name,
            last_name=self.last_name,
            phone=self.phone,
            email=self.email,
        )


# =============================================================================
# Contact Validation
# =============================================================================

def validate_phone_number(phone: str) -> tuple[str | None, str | None]:
    """
    Validate a US phone number using the phonenumbers library.

    Returns:
        Tuple of (E.164 phone, error_message); exactly one is None.
    """
    if not phone:
        return (None, "Please enter a phone number.")

    digits_only = re.sub(r"\D", "", phone)
    if len(digits_only) == 10:
        digits_only = "1" + digits_only
    elif len(digits_only) < 10:
        return (None, "That phone number is too short. US numbers have 10 digits.")
    elif len(digits_only) > 11 or not digits_only.startswith("1"):
        return (None, "Please enter a 10-digit US phone number.")

    try:
        parsed_number = phonenumbers.parse("+" + digits_only, None)
    except NumberParseException as e:
        logger.warning("Phone validation failed: %s - %s", phone, str(e))
        return (None, "We couldn't read that phone number. Please check it and try again.")

    if not phonenumbers.is_valid_number(parsed_number):
        return (None, "That doesn't look like a valid phone number.")

    if phonenumbers.region_code_for_number(parsed_number) != "US":
        return (None, "Please enter a US phone number.")

    return (phonenumbers.format_number(parsed_number, phonenumbers.PhoneNumberFormat.E164), None)


def validate_email_address(email: str) -> tuple[str | None, str | None]:
    """
    Validate an email address using the email-validator library.

    Syntax only; deliverability (DNS/MX) is not checked.

    Returns:
        Tuple of (normalized_email, error_message); exactly one is None.
    """
    if not email:
        return (None, "Please enter an email address.")

    try:
        result = validate_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        logger.warning("Email validation failed: %s - %s", email, str(e))
        if "@" not in email:
            return (None, "That email address is missing an @ symbol.")
        return (None, "That doesn't look like a valid email address.")
    return (result.normalized, None)


# =============================================================================
# Submission Checks
# =============================================================================

def validate_order_submission(
    cart: Cart,
    contact: CustomerContact,
    breakdown: FeeBreakdown,
    payment_method: str = "card",
    payment_intent_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CustomerContact:
    """
    Run pre-placement checks for a cart.

    Args:
        cart: Cart being checked out
        contact: Customer details from the checkout form
        breakdown: Fee breakdown computed from the same cart
        payment_method: card/apple_pay/google_pay/pos
        payment_intent_id: Authorized payment intent, required for card
        now: Clock override for quote expiry

    Returns:
        The contact with phone in E.164 form and a normalized email

    Raises:
        OrderSubmissionError: On the first failed check
    """
    if not cart.items:
        raise OrderSubmissionError("Your cart is empty", field="items")

    if cart.fulfillment_type is None:
        raise OrderSubmissionError("Please choose pickup or delivery", field="fulfillment_type")

    if not contact.first_name.strip():
        raise OrderSubmissionError("Please enter your name", field="first_name")

    phone, phone_error = validate_phone_number(contact.phone)
    if phone_error:
        raise OrderSubmissionError(phone_error, field="phone")

    email, email_error = validate_email_address(contact.email)
    if email_error:
        raise OrderSubmissionError(email_error, field="email")

    if cart.fulfillment_type == FulfillmentType.DELIVERY:
        _validate_delivery(cart, breakdown, now)

    if payment_method in INTENT_PAYMENT_METHODS and not payment_intent_id:
        raise OrderSubmissionError("Payment authorization is still pending", field="payment_intent_id")

    return CustomerContact(
        first_name=contact.first_name.strip(),
        last_name=contact.last_name.strip(),
        phone=phone,
        email=email,
    )


def _validate_delivery(cart: Cart, breakdown: FeeBreakdown, now: Optional[datetime]) -> None:
    address = cart.delivery_address
    if address is None or not address.is_complete():
        raise OrderSubmissionError("Please enter a complete delivery address", field="delivery_address")

    quote = cart.delivery_quote
    if quote is None:
        raise OrderSubmissionError(
            "Delivery quote not available yet. Please confirm your address.",
            field="delivery_quote",
        )
    if not quote.quote_id:
        raise OrderSubmissionError(
            "Delivery quote is missing quote ID. Please try selecting your address again.",
            field="delivery_quote",
        )
    if quote.is_expired(now):
        raise OrderSubmissionError("The delivery quote has expired. Please try again.", field="delivery_quote")

    if quote.fee_cents != breakdown.delivery_fee:
        logger.warning(
            "Delivery fee mismatch: quote=%d breakdown=%d", quote.fee_cents, breakdown.delivery_fee
        )
        raise OrderSubmissionError("Delivery fee mismatch. Please refresh and try again.", field="delivery_quote")


# =============================================================================
# Item Metadata
# =============================================================================

def build_order_items_metadata(items: Iterable[CartLineItem]) -> List[OrderItemMetadata]:
    """Compact item records for payment metadata: first 25 lines, notes cut to 120 chars."""
    metadata = []
    for item in list(items)[:MAX_ORDER_ITEMS]:
        metadata.append(OrderItemMetadata(
            sku=item.sku,
            name=item.name,
            quantity=item.quantity,
            unit=item.unit.value,
            unit_label=item.unit_label,
            quantity_display=format_quantity_display(item.quantity, item.unit),
            unit_price_cents=item.unit_price_cents,
            total_price_cents=calculate_line_total(item),
            modifiers=[mod.name for mod in item.modifiers if mod.name],
            note=item.note[:MAX_NOTE_LENGTH] if item.note else None,
        ))
    return metadata


def build_order_items_summary(items: Iterable[CartLineItem]) -> str:
    """One-line summary such as "0.5 lb Pastrami, 2 Bagel", cut to 600 chars."""
    summary = ", ".join(
        f"{entry.quantity_display} {entry.name}".strip()
        for entry in build_order_items_metadata(items)
    )
    return summary[:MAX_SUMMARY_LENGTH]


# =============================================================================
# Payload Builders
# =============================================================================

def _payment_breakdown(breakdown: FeeBreakdown) -> PaymentBreakdown:
    return PaymentBreakdown(
        subtotal=breakdown.subtotal,
        delivery_fee=breakdown.delivery_fee,
        platform_fee=breakdown.platform_fee,
        processor_fee_estimate=breakdown.processor_fee_estimate,
        tax=breakdown.tax,
        tip=breakdown.tip,
        discount=breakdown.discount,
        total=breakdown.total,
        net_payout_estimate=breakdown.net_payout_estimate,
    )


def build_order_payload(
    cart: Cart,
    contact: CustomerContact,
    breakdown: FeeBreakdown,
    payment_method: str = "card",
    payment_intent_id: Optional[str] = None,
) -> OrderCreate:
    """
    Build the order payload from a validated cart and its breakdown.

    Totals come from the breakdown only; nothing is recomputed here.
    """
    is_delivery = breakdown.fulfillment_type == FulfillmentType.DELIVERY
    summary = build_order_items_summary(cart.items)

    items = [
        OrderItemPayload(
            sku=item.sku,
            name=item.name,
            price_cents=item.unit_price_cents,
            quantity=item.quantity,
            unit=item.unit.value,
            unit_label=item.unit_label,
            quantity_display=format_quantity_display(item.quantity, item.unit),
            line_total_cents=calculate_line_total(item),
            modifiers=[
                ModifierIn(id=mod.id, name=mod.name, price_cents=mod.price_cents)
                for mod in item.modifiers
            ],
            note=item.note or None,
            image=item.image,
        )
        for item in cart.items
    ]

    delivery = None
    quote = None
    if is_delivery and cart.delivery_address is not None:
        delivery = DeliveryAddressIn(**cart.delivery_address.to_dict())
    if is_delivery and cart.delivery_quote is not None:
        quote = DeliveryQuoteIn(
            quote_id=cart.delivery_quote.quote_id,
            fee_cents=cart.delivery_quote.fee_cents,
            expires_at=cart.delivery_quote.expires_at,
            provider=cart.delivery_quote.provider,
            currency=cart.delivery_quote.currency,
            eta_minutes=cart.delivery_quote.eta_minutes,
        )

    return OrderCreate(
        fulfillment_type=breakdown.fulfillment_type.value,
        items=items,
        customer=contact.to_schema(),
        delivery=delivery,
        totals=OrderTotals(
            subtotal=breakdown.subtotal,
            tax=breakdown.tax,
            service_fee=breakdown.service_fee,
            delivery_fee=breakdown.delivery_fee,
            tip=breakdown.tip,
            discount=breakdown.discount,
            total=breakdown.total,
        ),
        breakdown=_payment_breakdown(breakdown),
        tip_mode=cart.tip.mode,
        promo_code=cart.promo.code if cart.promo else None,
        promo_id=cart.promo.id if cart.promo else None,
        order_items_summary=summary,
        metadata={
            "payment_method": payment_method,
            "order_items_summary": summary,
            "delivery_provider": breakdown.courier if is_delivery else "pickup",
            "platform_fee_cents": breakdown.platform_fee,
            "delivery_fee_cents": breakdown.delivery_fee,
            "processor_fee_estimate_cents": breakdown.processor_fee_estimate,
            "net_payout_estimate_cents": breakdown.net_payout_estimate,
            "courier_tip_cents": breakdown.courier_tip,
            "tip_was_capped": breakdown.tip_was_capped,
        },
        delivery_quote=quote,
        payment_method=payment_method,
        payment_intent_id=payment_intent_id,
    )


def build_payment_intent_payload(
    cart: Cart,
    contact: CustomerContact,
    breakdown: FeeBreakdown,
    payment_intent_id: Optional[str] = None,
    currency: str = "usd",
) -> PaymentIntentRequest:
    """Payment intent request; application_fee_cents is breakdown.platform_fee."""
    return PaymentIntentRequest(
        amount=breakdown.total,
        subtotal=breakdown.subtotal,
        tax=breakdown.tax,
        service_fee=breakdown.service_fee,
        delivery_fee=breakdown.delivery_fee,
        tip=breakdown.tip,
        discount=breakdown.discount,
        currency=currency,
        platform_fee=breakdown.platform_fee,
        application_fee_cents=breakdown.application_fee,
        processor_fee_estimate=breakdown.processor_fee_estimate,
        delivery_provider=breakdown.courier,
        fulfillment_type=breakdown.fulfillment_type.value,
        breakdown=_payment_breakdown(breakdown),
        order_items=build_order_items_metadata(cart.items),
        order_items_summary=build_order_items_summary(cart.items),
        payment_intent_id=payment_intent_id,
        customer=contact.to_schema(),
    )


# =============================================================================
# Cancel Window
# =============================================================================

@dataclass(frozen=True)
class CancelWindow:
    remaining_seconds: int
    remaining_ms: int
    expired: bool
    formatted_time: str


def cancel_window_remaining(
    created_at: datetime,
    now: Optional[datetime] = None,
    window_seconds: int = config.CANCEL_WINDOW_SECONDS,
) -> CancelWindow:
    """
    Time left for the customer to cancel an order.

    Naive timestamps are treated as UTC. formatted_time is "m:ss".
    """
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    elapsed_ms = (now - created_at).total_seconds() * 1000
    remaining_ms = max(0, int(window_seconds * 1000 - elapsed_ms))
    remaining_seconds = math.ceil(remaining_ms / 1000)
    minutes, seconds = divmod(remaining_seconds, 60)

    return CancelWindow(
        remaining_seconds=remaining_seconds,
        remaining_ms=remaining_ms,
        expired=remaining_ms <= 0,
        formatted_time=f"{minutes}:{seconds:02d}",
    )
