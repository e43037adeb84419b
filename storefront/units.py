"""
Price unit normalization and quantity formatting.

Menu items are priced per unit (each, per pound, per dozen, ...). Unit strings
arrive from menu data, admin input and old carts in many spellings, so they
are always normalized to a canonical unit before pricing or display.

Weight and volume units accept decimal quantities (0.25 lb); count units are
whole numbers.
"""

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class CanonicalUnit(str, Enum):
    """Canonical price units."""
    EACH = "each"
    LB = "lb"
    OZ = "oz"
    KG = "kg"
    G = "g"
    DOZEN = "dozen"
    PACK = "pack"
    L = "l"
    ML = "ml"


DEFAULT_UNIT = CanonicalUnit.EACH

UNIT_ALIASES = {
    "lb": CanonicalUnit.LB,
    "lbs": CanonicalUnit.LB,
    "pound": CanonicalUnit.LB,
    "pounds": CanonicalUnit.LB,
    "oz": CanonicalUnit.OZ,
    "ounce": CanonicalUnit.OZ,
    "ounces": CanonicalUnit.OZ,
    "floz": CanonicalUnit.OZ,
    "fl oz": CanonicalUnit.OZ,
    "fluidounce": CanonicalUnit.OZ,
    "each": CanonicalUnit.EACH,
    "pack": CanonicalUnit.PACK,
    "dozen": CanonicalUnit.DOZEN,
    "kg": CanonicalUnit.KG,
    "g": CanonicalUnit.G,
    "l": CanonicalUnit.L,
    "liter": CanonicalUnit.L,
    "liters": CanonicalUnit.L,
    "litre": CanonicalUnit.L,
    "litres": CanonicalUnit.L,
    "ltr": CanonicalUnit.L,
    "ml": CanonicalUnit.ML,
    "milliliter": CanonicalUnit.ML,
    "milliliters": CanonicalUnit.ML,
    "millilitre": CanonicalUnit.ML,
    "millilitres": CanonicalUnit.ML,
}


@dataclass(frozen=True)
class UnitConfig:
    """Display and quantity rules for one canonical unit."""
    unit: CanonicalUnit
    is_weight: bool
    decimals: int
    step: float
    minimum: float
    price_suffix: str
    aria_suffix: str
    quantity_label: str
    quantity_suffix: str


UNIT_CONFIG = {
    CanonicalUnit.LB: UnitConfig(CanonicalUnit.LB, True, 2, 0.25, 0.25, "/lb", "per pound", "Weight (lb)", "lb"),
    # oz steps are a quarter-pound
    CanonicalUnit.OZ: UnitConfig(CanonicalUnit.OZ, True, 2, 4, 4, "/oz", "per ounce", "Weight (oz)", "oz"),
    CanonicalUnit.KG: UnitConfig(CanonicalUnit.KG, True, 2, 0.5, 1, "/kg", "per kilogram", "Weight (kg)", "kg"),
    CanonicalUnit.G: UnitConfig(CanonicalUnit.G, True, 0, 50, 50, "/g", "per gram", "Weight (g)", "g"),
    CanonicalUnit.EACH: UnitConfig(CanonicalUnit.EACH, False, 0, 1, 1, "each", "each", "Quantity", ""),
    CanonicalUnit.PACK: UnitConfig(CanonicalUnit.PACK, False, 0, 1, 1, "per pack", "per pack", "Packs", "pack"),
    CanonicalUnit.DOZEN: UnitConfig(CanonicalUnit.DOZEN, False, 0, 1, 1, "per dozen", "per dozen", "Dozens", "dozen"),
    CanonicalUnit.L: UnitConfig(CanonicalUnit.L, True, 2, 0.5, 1, "/L", "per liter", "Volume (L)", "L"),
    CanonicalUnit.ML: UnitConfig(CanonicalUnit.ML, True, 0, 50, 50, "/mL", "per milliliter", "Volume (mL)", "mL"),
}


def normalize_unit(unit: Optional[str]) -> CanonicalUnit:
    """
    Normalize a unit string to its canonical unit.

    Examples:
        "LBS" -> lb
        "fl. oz" -> oz
        "Litres" -> l
        None / "" / "bushel" -> each
    """
    if isinstance(unit, CanonicalUnit):
        return unit
    if not unit:
        return DEFAULT_UNIT

    cleaned = unit.strip().lower().replace(".", "")
    collapsed = re.sub(r"\s+", "", cleaned)

    if cleaned in UNIT_ALIASES:
        return UNIT_ALIASES[cleaned]
    if collapsed in UNIT_ALIASES:
        return UNIT_ALIASES[collapsed]
    return DEFAULT_UNIT


def get_unit_config(unit: Optional[str]) -> UnitConfig:
    return UNIT_CONFIG[normalize_unit(unit)]


def is_weight_unit(unit: Optional[str]) -> bool:
    return get_unit_config(unit).is_weight


def unit_minimum(unit: Optional[str]) -> float:
    return get_unit_config(unit).minimum


def unit_decimals(unit: Optional[str]) -> int:
    return get_unit_config(unit).decimals


def _trim_zeros(value: str) -> str:
    if "." not in value:
        return value
    return value.rstrip("0").rstrip(".")


def format_unit_suffix(unit: Optional[str], unit_label: Optional[str] = None) -> str:
    """
    Price suffix shown next to a unit price ("/lb", "each", "per pack").

    A custom label wins unless it just repeats the unit name, in which case
    the configured suffix is used ("lb" -> "/lb").
    """
    config = get_unit_config(unit)
    if unit_label and unit_label.strip():
        label = unit_label.strip()
        if label.lower() == config.unit.value:
            return config.price_suffix
        return label
    return config.price_suffix


def format_quantity_value(value: float, unit: Optional[str] = None) -> str:
    """Format a quantity number for its unit ("0.25", "2", "1.5")."""
    config = get_unit_config(unit)
    if config.is_weight:
        return _trim_zeros(f"{value:.{config.decimals}f}")
    if float(value).is_integer():
        return str(int(value))
    return _trim_zeros(f"{value:.2f}")


def format_quantity_display(value: float, unit: Optional[str] = None) -> str:
    """Format a quantity with its unit suffix ("0.25 lb", "2", "3 pack")."""
    config = get_unit_config(unit)
    formatted = format_quantity_value(value, unit)
    if config.quantity_suffix:
        return f"{formatted} {config.quantity_suffix}".strip()
    return formatted


@dataclass
class CourierQuantity:
    """Quantity as sent in a courier delivery manifest."""
    quantity: int
    raw_quantity: float
    unit: CanonicalUnit
    quantity_display: str
    is_weight_based: bool
    description_suffix: Optional[str] = None


def format_quantity_for_courier(quantity: float, unit: Optional[str] = None) -> CourierQuantity:
    """
    Convert a cart quantity into a courier manifest quantity.

    Courier APIs expect integer quantities, so weight items go out as a single
    unit with the weight appended to the description.
    """
    normalized = normalize_unit(unit)
    config = UNIT_CONFIG[normalized]
    display = format_quantity_display(quantity, normalized)

    if config.is_weight:
        return CourierQuantity(
            quantity=1,
            raw_quantity=round(quantity, config.decimals),
            unit=normalized,
            quantity_display=display,
            is_weight_based=True,
            description_suffix=f"({display})",
        )

    whole = max(1, math.ceil(quantity))
    return CourierQuantity(
        quantity=whole,
        raw_quantity=whole,
        unit=normalized,
        quantity_display=display,
        is_weight_based=False,
    )
