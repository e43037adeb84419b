"""
Cart State
==========

The Cart is the single state object behind checkout: line items, tip, promo,
fulfillment choice, delivery address and quote, and the guest's contact
details. Every mutation goes through an action method so the invariants hold
no matter which endpoint changed the cart:

- Lines are keyed by sku + sorted modifiers + trimmed note. Adding a product
  configuration that is already in the cart bumps that line's quantity.
- Quantities are rounded to the unit's precision (0.25 lb stays 0.25, 2.4
  each becomes 2). A quantity below the unit minimum removes the line.
- The promo discount is recomputed from the current subtotal on every read,
  so adding or removing items can never leave a stale discount.
- A custom tip and a percentage tip are mutually exclusive.
- Switching to pickup drops any delivery quote; changing the delivery address
  drops the quote when the address fingerprint changes.
- clear() empties the order but keeps the guest's contact details for the
  next order.

Carts are plain data: to_dict()/from_dict() round-trip through the JSON
column in the cart store.
"""

import logging
import math
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .delivery import DeliveryAddress, DeliveryQuote
from .errors import InvalidQuantityError
from .fees import FeeConfig
from .fulfillment import FulfillmentType, coerce_fulfillment
from .money import clamp_cents, clamp_rate
from .pricing import (
    CartLineItem,
    CartModifier,
    FeeBreakdown,
    Promo,
    TipSelection,
    calculate_fee_breakdown,
    calculate_subtotal,
    resolve_promo_discount,
)
from .units import normalize_unit, unit_decimals, unit_minimum

logger = logging.getLogger(__name__)


def _new_line_id() -> str:
    return f"line-{uuid.uuid4().hex[:12]}"


def _round_quantity(quantity: float, decimals: int) -> float:
    if decimals > 0:
        return round(quantity, decimals)
    return math.floor(quantity + 0.5)


def _coerce_quantity(quantity: Any) -> float:
    try:
        return float(quantity)
    except (TypeError, ValueError):
        return math.nan


@dataclass
class GuestInfo:
    """Contact details remembered between orders."""
    name: str = ""
    email: str = ""
    phone: str = ""


class Cart:
    """Mutable cart with action methods. Not thread-safe; one per customer."""

    def __init__(self, cart_id: Optional[str] = None):
        self.cart_id = cart_id or uuid.uuid4().hex
        self.items: List[CartLineItem] = []
        self.tip = TipSelection()
        self.promo: Optional[Promo] = None
        self.fulfillment_type: Optional[FulfillmentType] = None
        self.delivery_address: Optional[DeliveryAddress] = None
        self.delivery_quote: Optional[DeliveryQuote] = None
        self.guest = GuestInfo()

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    def get_item(self, line_id: str) -> Optional[CartLineItem]:
        for item in self.items:
            if item.line_id == line_id:
                return item
        return None

    def _find_by_key(self, key: str, exclude: Optional[str] = None) -> Optional[CartLineItem]:
        for item in self.items:
            if item.line_id != exclude and item.line_key == key:
                return item
        return None

    def add_item(
        self,
        sku: str,
        name: str,
        unit_price_cents: int,
        quantity: float = 1,
        unit: Optional[str] = None,
        modifiers: Optional[List[Union[CartModifier, Dict[str, Any]]]] = None,
        note: str = "",
        unit_label: Optional[str] = None,
        image: Optional[str] = None,
    ) -> CartLineItem:
        """
        Add a product to the cart, merging with an identical line.

        The quantity is rounded to the unit's precision (2.4 each adds 2).

        Returns:
            The new or updated line item

        Raises:
            InvalidQuantityError: NaN, zero, negative, or below the unit
                minimum (0.1 lb, 0.4 each)
        """
        canonical = normalize_unit(unit)
        minimum = unit_minimum(canonical)
        if quantity is None:
            quantity = 1
        value = _coerce_quantity(quantity)
        if math.isnan(value) or value <= 0 or value < minimum:
            raise InvalidQuantityError(quantity, canonical.value, minimum)
        value = _round_quantity(value, unit_decimals(canonical))

        mods = [
            mod if isinstance(mod, CartModifier) else CartModifier(**mod)
            for mod in modifiers or []
        ]
        candidate = CartLineItem(
            sku=sku,
            name=name,
            unit_price_cents=clamp_cents(unit_price_cents),
            quantity=value,
            unit=canonical,
            modifiers=mods,
            note=note or "",
            unit_label=unit_label,
            image=image,
        )

        existing = self._find_by_key(candidate.line_key)
        if existing is not None:
            existing.quantity = _round_quantity(
                existing.quantity + candidate.quantity, unit_decimals(existing.unit)
            )
            logger.debug("Merged %s into line %s (qty=%s)", sku, existing.line_id, existing.quantity)
            return existing

        candidate.line_id = _new_line_id()
        self.items.append(candidate)
        logger.debug("Added line %s for %s", candidate.line_id, sku)
        return candidate

    def remove_item(self, line_id: str) -> bool:
        before = len(self.items)
        self.items = [item for item in self.items if item.line_id != line_id]
        return len(self.items) != before

    def set_item_quantity(self, line_id: str, quantity: float) -> Optional[CartLineItem]:
        """
        Set a line's quantity.

        NaN, zero, negative, or anything below the unit minimum removes the
        line (returns None). Otherwise the quantity is rounded to the unit's
        precision. Unknown line ids are ignored.
        """
        target = self.get_item(line_id)
        if target is None:
            return None

        quantity = _coerce_quantity(quantity)
        if math.isnan(quantity) or quantity <= 0 or quantity < unit_minimum(target.unit):
            self.remove_item(line_id)
            return None

        target.quantity = _round_quantity(quantity, unit_decimals(target.unit))
        return target

    def update_item_note(self, line_id: str, note: str) -> Optional[CartLineItem]:
        """
        Change a line's note.

        The note is part of the line key, so a line whose new note matches
        another line is merged into it.
        """
        target = self.get_item(line_id)
        if target is None:
            return None

        target.note = note or ""
        duplicate = self._find_by_key(target.line_key, exclude=line_id)
        if duplicate is None:
            return target

        duplicate.quantity = _round_quantity(
            duplicate.quantity + target.quantity, unit_decimals(duplicate.unit)
        )
        self.remove_item(line_id)
        return duplicate

    @property
    def item_count(self) -> float:
        return sum(item.quantity for item in self.items)

    @property
    def raw_subtotal_cents(self) -> int:
        return calculate_subtotal(self.items)

    # -------------------------------------------------------------------------
    # Promo / Tip
    # -------------------------------------------------------------------------

    def apply_promo(self, promo: Promo) -> int:
        """Attach a validated promo. Returns the discount it currently yields."""
        promo.code = promo.code.strip().upper()
        self.promo = promo
        return self.promo_discount_cents

    def clear_promo(self) -> None:
        self.promo = None

    @property
    def promo_discount_cents(self) -> int:
        return resolve_promo_discount(self.promo, self.raw_subtotal_cents)

    def set_tip_percentage(self, percentage: float) -> None:
        self.tip = TipSelection(percentage=clamp_rate(percentage), custom_cents=0)

    def set_custom_tip(self, amount_cents: int) -> None:
        self.tip = TipSelection(percentage=0.0, custom_cents=clamp_cents(amount_cents))

    # -------------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------------

    def set_fulfillment_type(self, fulfillment: Union[str, FulfillmentType, None]) -> None:
        self.fulfillment_type = coerce_fulfillment(fulfillment) if fulfillment else None
        if self.fulfillment_type != FulfillmentType.DELIVERY:
            self.delivery_quote = None

    def set_delivery_address(self, address: Optional[DeliveryAddress]) -> None:
        """Set the drop-off address, dropping the quote if the address changed."""
        old_key = self.delivery_address.fingerprint() if self.delivery_address else None
        new_key = address.fingerprint() if address else None
        self.delivery_address = address
        if old_key != new_key and self.delivery_quote is not None:
            logger.debug("Delivery address changed, dropping quote %s", self.delivery_quote.quote_id)
            self.delivery_quote = None

    def set_delivery_quote(self, quote: Optional[DeliveryQuote]) -> None:
        self.delivery_quote = quote

    @property
    def is_delivery(self) -> bool:
        return self.fulfillment_type == FulfillmentType.DELIVERY

    @property
    def delivery_fee_cents(self) -> int:
        if not self.is_delivery or self.delivery_quote is None:
            return 0
        return self.delivery_quote.fee_cents

    # -------------------------------------------------------------------------
    # Totals / Reset
    # -------------------------------------------------------------------------

    def totals(self, fee_config: Optional[FeeConfig] = None) -> FeeBreakdown:
        """Fee breakdown for the cart as it stands."""
        return calculate_fee_breakdown(
            self.items,
            tip=self.tip,
            promo_discount_cents=self.promo_discount_cents,
            fee_config=fee_config,
            fulfillment_type=self.fulfillment_type,
            delivery_fee_cents=self.delivery_fee_cents,
        )

    def clear(self) -> None:
        """Empty the cart. Guest contact details are kept."""
        self.items = []
        self.tip = TipSelection()
        self.promo = None
        self.fulfillment_type = None
        self.delivery_address = None
        self.delivery_quote = None

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cart_id": self.cart_id,
            "items": [item.to_dict() for item in self.items],
            "tip": {"percentage": self.tip.percentage, "custom_cents": self.tip.custom_cents},
            "promo": (
                {
                    "code": self.promo.code,
                    "discount_type": self.promo.discount_type.value,
                    "discount_value": self.promo.discount_value,
                    "max_discount_cents": self.promo.max_discount_cents,
                    "id": self.promo.id,
                    "name": self.promo.name,
                }
                if self.promo
                else None
            ),
            "fulfillment_type": self.fulfillment_type.value if self.fulfillment_type else None,
            "delivery_address": self.delivery_address.to_dict() if self.delivery_address else None,
            "delivery_quote": self.delivery_quote.to_dict() if self.delivery_quote else None,
            "guest": {"name": self.guest.name, "email": self.guest.email, "phone": self.guest.phone},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Cart":
        cart = cls(cart_id=data.get("cart_id"))
        cart.items = [CartLineItem.from_dict(item) for item in data.get("items") or []]
        for item in cart.items:
            item.line_id = item.line_id or _new_line_id()

        tip = data.get("tip") or {}
        cart.tip = TipSelection(
            percentage=tip.get("percentage", 0.0),
            custom_cents=tip.get("custom_cents", 0),
        )

        promo = data.get("promo")
        cart.promo = Promo(**promo) if promo else None

        fulfillment = data.get("fulfillment_type")
        cart.fulfillment_type = coerce_fulfillment(fulfillment) if fulfillment else None
        cart.delivery_address = DeliveryAddress.from_dict(data.get("delivery_address"))
        cart.delivery_quote = DeliveryQuote.from_dict(data.get("delivery_quote"))

        guest = data.get("guest") or {}
        cart.guest = GuestInfo(
            name=guest.get("name", ""),
            email=guest.get("email", ""),
            phone=guest.get("phone", ""),
        )
        return cart
