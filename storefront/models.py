from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    JSON,
    DateTime,
    ForeignKey,
    Text,
    Index,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    status = Column(String, nullable=False, default="created", index=True)
    fulfillment_type = Column(String, nullable=False, default="pickup")
    tenant_slug = Column(String, nullable=True, index=True)

    customer_first_name = Column(String, nullable=True)
    customer_last_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    customer_email = Column(String, nullable=True)
    delivery_address = Column(JSON, nullable=True)

    # All amounts in cents
    subtotal_cents = Column(Integer, nullable=False, default=0)  # discounted subtotal
    discount_cents = Column(Integer, nullable=False, default=0)
    tax_cents = Column(Integer, nullable=False, default=0)
    platform_fee_cents = Column(Integer, nullable=False, default=0)
    delivery_fee_cents = Column(Integer, nullable=False, default=0)
    tip_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False, default=0)
    processor_fee_estimate_cents = Column(Integer, nullable=False, default=0)
    net_payout_estimate_cents = Column(Integer, nullable=False, default=0)

    tip_mode = Column(String, nullable=True)  # percent/amount
    promo_code = Column(String, nullable=True)
    payment_method = Column(String, nullable=True)  # card/apple_pay/google_pay/pos
    payment_intent_id = Column(String, nullable=True)
    delivery_provider = Column(String, nullable=True)
    delivery_quote_id = Column(String, nullable=True)
    items_summary = Column(Text, nullable=True)
    extra_metadata = Column(JSON, nullable=True, default=dict)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    events = relationship(
        "OrderEvent",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderEvent.id",
    )

    __table_args__ = (
        Index("ix_orders_status_created_at", "status", "created_at"),
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)

    sku = Column(String, nullable=True)
    name = Column(String, nullable=False)
    quantity = Column(Float, nullable=False)  # fractional for weight units
    unit = Column(String, nullable=False, default="each")
    unit_label = Column(String, nullable=True)
    quantity_display = Column(String, nullable=True)
    unit_price_cents = Column(Integer, nullable=False)
    line_total_cents = Column(Integer, nullable=False)
    modifiers = Column(JSON, nullable=True)  # [{id, name, price_cents}]
    note = Column(Text, nullable=True)

    order = relationship("Order", back_populates="items")


class OrderEvent(Base):
    """
    Status history for an order. One row per applied transition, including
    the initial creation event.
    """
    __tablename__ = "order_events"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    from_status = Column(String, nullable=True)
    to_status = Column(String, nullable=False)
    source = Column(String, nullable=True)  # customer/kitchen/courier/admin/system
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    order = relationship("Order", back_populates="events")


class CartSession(Base):
    """
    Persists carts so they survive server restarts.
    """
    __tablename__ = "cart_sessions"

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(String, unique=True, nullable=False, index=True)
    tenant_slug = Column(String, nullable=True)

    # Serialized Cart.to_dict()
    cart_state = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
