"""
Fulfillment type definitions.

Fulfillment decides which fee and courier rules apply to an order: delivery
orders pay a delivery fee, route their tip to the courier and must go through
courier dispatch; pickup orders do neither.
"""

from enum import Enum
from typing import Optional, Union


class FulfillmentType(str, Enum):
    """How the customer receives the order."""
    PICKUP = "pickup"
    DELIVERY = "delivery"


def coerce_fulfillment(value: Optional[Union[str, FulfillmentType]]) -> FulfillmentType:
    """Anything other than "delivery" is treated as pickup."""
    if isinstance(value, FulfillmentType):
        return value
    if isinstance(value, str) and value.strip().lower() == FulfillmentType.DELIVERY.value:
        return FulfillmentType.DELIVERY
    return FulfillmentType.PICKUP
