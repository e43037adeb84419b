"""
Tests for fee configuration and fee formulas.
"""

from storefront.config import parse_delivery_zones
from storefront.fees import (
    DeliveryZone,
    FeeConfig,
    calculate_platform_fee,
    effective_platform_fee_rate,
    estimate_processor_fee,
)


class TestPlatformFee:
    def test_one_percent(self):
        assert calculate_platform_fee(1500, 0.01) == 15

    def test_rounds_half_up(self):
        # 250 * 0.01 = 2.5
        assert calculate_platform_fee(250, 0.01) == 3

    def test_zero_rate_falls_back_to_default(self):
        assert effective_platform_fee_rate(0) == 0.01
        assert effective_platform_fee_rate(None) == 0.01
        assert calculate_platform_fee(1000, 0) == 10

    def test_zero_subtotal(self):
        assert calculate_platform_fee(0, 0.05) == 0


class TestProcessorFee:
    def test_percent_plus_fixed(self):
        # 1000 * 0.029 + 30 = 59
        assert estimate_processor_fee(1000, 0.029, 30) == 59

    def test_zero_amount_has_no_fee(self):
        assert estimate_processor_fee(0, 0.029, 30) == 0


class TestFeeConfig:
    def test_from_dict_overrides_and_sorts_zones(self):
        fees = FeeConfig.from_dict({
            "tax_rate": 0.06625,
            "platform_fee_rate": 0.02,
            "delivery_zones": [
                {"max_distance_km": 8, "fee_cents": 699, "label": "Far"},
                {"max_distance_km": 3, "fee_cents": 399, "label": "Near", "eta_minutes": 25},
            ],
        })
        assert fees.tax_rate == 0.06625
        assert fees.platform_fee_rate == 0.02
        assert [z.label for z in fees.delivery_zones] == ["Near", "Far"]
        assert fees.delivery_zones[0].eta_minutes == 25

    def test_from_dict_clamps_garbage(self):
        fees = FeeConfig.from_dict({"tax_rate": "nope", "max_courier_tip_cents": -5})
        assert fees.tax_rate == 0.0
        assert fees.max_courier_tip_cents == 0

    def test_empty_block_uses_defaults(self):
        assert FeeConfig.from_dict(None) == FeeConfig()

    def test_zone_from_dict(self):
        zone = DeliveryZone.from_dict({"max_distance_km": "2.5", "fee_cents": "299"})
        assert zone.max_distance_km == 2.5
        assert zone.fee_cents == 299
        assert zone.min_order_cents == 0


class TestParseDeliveryZones:
    def test_parses_and_sorts(self):
        assert parse_delivery_zones("5:499, 2:299") == [(2.0, 299), (5.0, 499)]

    def test_skips_malformed_entries(self):
        assert parse_delivery_zones("2:299,bad,x:1,10:799,") == [(2.0, 299), (10.0, 799)]
