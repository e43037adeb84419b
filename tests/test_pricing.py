"""
Tests for the pricing engine: line totals, promos, tips, zones and the full
fee breakdown.
"""

import dataclasses
import math

import pytest

from storefront.fees import DeliveryZone
from storefront.fulfillment import FulfillmentType
from storefront.pricing import (
    CartLineItem,
    CartModifier,
    DiscountType,
    PricingEngine,
    Promo,
    TipSelection,
    calculate_fee_breakdown,
    calculate_line_total,
    calculate_subtotal,
    calculate_tip,
    find_delivery_zone,
    resolve_promo_discount,
    zone_delivery_fee,
)


def _item(price, quantity=1, unit=None, modifiers=None, sku="sku-1"):
    return CartLineItem(
        sku=sku,
        name="Item",
        unit_price_cents=price,
        quantity=quantity,
        unit=unit,
        modifiers=modifiers or [],
    )


class TestLineTotals:
    def test_weight_line_rounds_half_up(self):
        # 1299 * 0.25 = 324.75
        assert calculate_line_total(_item(1299, 0.25, "lb")) == 325

    def test_modifiers_add_to_unit_price(self):
        item = _item(500, 2, modifiers=[
            CartModifier(id="m1", name="Extra Shot", price_cents=75),
            CartModifier(id="m2", name="Oat Milk", price_cents=50),
        ])
        assert item.unit_total_cents() == 625
        assert calculate_line_total(item) == 1250

    def test_lines_rounded_individually(self):
        # Each line is 50.5 -> 51; rounding the sum instead would give 101
        items = [_item(101, 0.5, "lb", sku="a"), _item(101, 0.5, "lb", sku="b")]
        assert calculate_subtotal(items) == 102

    def test_negative_price_treated_as_zero(self):
        assert calculate_line_total(_item(-500, 2)) == 0

    def test_line_key_ignores_modifier_order(self):
        a = _item(500, modifiers=[CartModifier("x", "X", 10), CartModifier("y", "Y", 20)])
        b = _item(500, modifiers=[CartModifier("y", "Y", 20), CartModifier("x", "X", 10)])
        assert a.line_key == b.line_key

    def test_line_key_trims_note(self):
        a = _item(500)
        a.note = "no onions "
        b = _item(500)
        b.note = "no onions"
        assert a.line_key == b.line_key


class TestPromoDiscount:
    def test_percentage(self):
        promo = Promo(code="SAVE10", discount_type=DiscountType.PERCENTAGE, discount_value=10)
        assert resolve_promo_discount(promo, 2000) == 200

    def test_percentage_respects_cap(self):
        promo = Promo(code="BIG", discount_type="percentage", discount_value=50, max_discount_cents=500)
        assert resolve_promo_discount(promo, 2000) == 500

    def test_fixed_amount_capped_at_subtotal(self):
        promo = Promo(code="FIVE", discount_type="fixed_amount", discount_value=500)
        assert resolve_promo_discount(promo, 300) == 300

    def test_no_promo_or_empty_cart(self):
        promo = Promo(code="FIVE", discount_type="fixed_amount", discount_value=500)
        assert resolve_promo_discount(None, 1000) == 0
        assert resolve_promo_discount(promo, 0) == 0


class TestTip:
    def test_percentage_of_subtotal(self):
        assert calculate_tip(TipSelection(percentage=18), 1500, FulfillmentType.PICKUP, 2000) == (270, False)

    def test_custom_amount_wins(self):
        tip = TipSelection(percentage=20, custom_cents=300)
        assert calculate_tip(tip, 1500, FulfillmentType.PICKUP, 2000) == (300, False)

    def test_delivery_tip_capped(self):
        tip = TipSelection(custom_cents=2500)
        assert calculate_tip(tip, 1500, FulfillmentType.DELIVERY, 2000) == (2000, True)

    def test_pickup_tip_not_capped(self):
        tip = TipSelection(custom_cents=2500)
        assert calculate_tip(tip, 1500, FulfillmentType.PICKUP, 2000) == (2500, False)

    def test_mode(self):
        assert TipSelection(percentage=15).mode == "percent"
        assert TipSelection(custom_cents=100).mode == "amount"


class TestDeliveryZones:
    ZONES = [
        DeliveryZone(max_distance_km=5, fee_cents=499),
        DeliveryZone(max_distance_km=2, fee_cents=299),
    ]

    def test_nearest_covering_zone(self):
        assert zone_delivery_fee(1.2, self.ZONES) == 299
        assert zone_delivery_fee(2.0, self.ZONES) == 299
        assert zone_delivery_fee(3.5, self.ZONES) == 499

    def test_out_of_range(self):
        assert zone_delivery_fee(7, self.ZONES) is None

    @pytest.mark.parametrize("distance", [None, "far", float("nan"), float("inf")])
    def test_unusable_distance(self, distance):
        assert find_delivery_zone(distance, self.ZONES) is None

    def test_negative_distance_is_zero(self):
        assert zone_delivery_fee(-3, self.ZONES) == 299


class TestFeeBreakdown:
    """Full breakdowns with fixed test fees."""

    def test_pickup_with_promo_and_tip(self, fee_config):
        promo = Promo(code="FIVE", discount_type="fixed_amount", discount_value=500)
        items = [_item(1000, 2)]
        breakdown = calculate_fee_breakdown(
            items,
            tip=TipSelection(percentage=18),
            promo_discount_cents=resolve_promo_discount(promo, calculate_subtotal(items)),
            fee_config=fee_config,
            fulfillment_type="pickup",
        )
        assert breakdown.raw_subtotal == 2000
        assert breakdown.discount == 500
        assert breakdown.subtotal == 1500
        # 1500 * 0.0875 = 131.25
        assert breakdown.tax == 131
        assert breakdown.tip == 270
        assert breakdown.platform_fee == 15
        assert breakdown.service_fee == 15
        assert breakdown.application_fee == 15
        assert breakdown.delivery_fee == 0
        assert breakdown.total == 1916
        # 1916 * 0.029 + 30 = 85.564
        assert breakdown.processor_fee_estimate == 86
        assert breakdown.net_payout_estimate == 1916 - 86 - 15
        assert breakdown.courier is None

    def test_delivery_fee_and_courier_tip(self, fee_config):
        breakdown = calculate_fee_breakdown(
            [_item(1000, 2)],
            tip=TipSelection(custom_cents=300),
            fee_config=fee_config,
            fulfillment_type="delivery",
            delivery_fee_cents=599,
        )
        assert breakdown.fulfillment_type == FulfillmentType.DELIVERY
        assert breakdown.delivery_fee == 599
        assert breakdown.courier == "uber_direct"
        assert breakdown.courier_tip == 300
        assert breakdown.total == (
            breakdown.subtotal + breakdown.tax + breakdown.platform_fee
            + breakdown.delivery_fee + breakdown.tip
        )
        assert breakdown.net_payout_estimate == (
            breakdown.total - breakdown.processor_fee_estimate - breakdown.platform_fee - 599 - 300
        )

    def test_pickup_ignores_delivery_fee(self, fee_config):
        breakdown = calculate_fee_breakdown(
            [_item(1000)], fee_config=fee_config, fulfillment_type="pickup", delivery_fee_cents=599
        )
        assert breakdown.delivery_fee == 0

    def test_discount_never_exceeds_subtotal(self, fee_config):
        breakdown = calculate_fee_breakdown([_item(300)], promo_discount_cents=1000, fee_config=fee_config)
        assert breakdown.discount == 300
        assert breakdown.subtotal == 0
        assert breakdown.tax == 0
        assert breakdown.platform_fee == 0
        assert breakdown.total == 0
        assert breakdown.processor_fee_estimate == 0

    def test_net_payout_floored_at_zero(self, fee_config):
        breakdown = calculate_fee_breakdown(
            [_item(100)], fee_config=fee_config, fulfillment_type="delivery", delivery_fee_cents=5000
        )
        assert breakdown.net_payout_estimate == 0

    def test_empty_cart(self, fee_config):
        breakdown = calculate_fee_breakdown([], fee_config=fee_config)
        assert breakdown.total == 0
        assert breakdown.net_payout_estimate == 0

    def test_to_dict_includes_fee_aliases(self, fee_config):
        data = calculate_fee_breakdown([_item(1000)], fee_config=fee_config).to_dict()
        assert data["fulfillment_type"] == "pickup"
        assert data["service_fee"] == data["platform_fee"] == data["application_fee"]

    def test_same_inputs_same_breakdown(self, fee_config):
        def price():
            return calculate_fee_breakdown(
                [_item(2499, 0.5, unit="lb"), _item(250, 3, sku="bagel")],
                tip=TipSelection(percentage=15),
                promo_discount_cents=200,
                fee_config=fee_config,
                fulfillment_type="delivery",
                delivery_fee_cents=599,
            )

        first, second = price(), price()
        assert first == second
        assert first.to_dict() == second.to_dict()

    @pytest.mark.parametrize("fulfillment, expected_tip", [("delivery", 2000), ("pickup", 25000)])
    def test_percentage_tip_capped_for_delivery_only(self, fee_config, fulfillment, expected_tip):
        breakdown = calculate_fee_breakdown(
            [_item(100000)],
            tip=TipSelection(percentage=25),
            fee_config=fee_config,
            fulfillment_type=fulfillment,
            delivery_fee_cents=599,
        )
        assert breakdown.tip == expected_tip

    def test_non_finite_inputs_price_as_zero(self, fee_config):
        breakdown = calculate_fee_breakdown(
            [_item(1000), _item(math.nan, math.inf, sku="broken")],
            tip=TipSelection(percentage=math.nan, custom_cents=math.inf),
            promo_discount_cents=math.nan,
            fee_config=fee_config,
            fulfillment_type="delivery",
            delivery_fee_cents=-math.inf,
        )
        assert breakdown.raw_subtotal == 1000
        assert breakdown.discount == 0
        assert breakdown.tip == 0
        assert breakdown.delivery_fee == 0
        # 1000 * 0.0875 = 87.5
        assert breakdown.tax == 88
        assert breakdown.total == 1000 + 88 + 10
        assert all(isinstance(value, int) for key, value in breakdown.to_dict().items()
                   if key not in ("fulfillment_type", "courier"))

    def test_non_finite_tax_rate_is_zero(self, fee_config):
        config = dataclasses.replace(fee_config, tax_rate=math.nan)
        assert calculate_fee_breakdown([_item(1000)], fee_config=config).tax == 0


class TestPricingEngine:
    def test_engine_uses_its_config(self, fee_config):
        engine = PricingEngine(fee_config)
        # 1200 * 0.0875 = 105
        assert engine.breakdown([_item(1200)]).tax == 105
        assert engine.zone_fee(4) == 499
        assert engine.zone_fee(50) is None
