from sqlalchemy import (
    String, ForeignKey, Boolean, Numeric, Enum, Text, DateTime, Integer, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enum import Enum as PyEnum
from datetime import datetime
from typing import Optional
from roms.db import Base
from roms.models.common import IdMixin, TSMMixin, utcnow

# ── Enums ───────────────────────────────────────────────────────────────────
class OrderStatus(PyEnum):
    PLACED = "Placed"
    SCHEDULED = "Scheduled"
    PENDING = "Pending"          # POS orders start here
    PROCESSING = "Processing"
    READY = "Ready"
    OUT_FOR_DELIVERY = "OutForDelivery"
    DELIVERED = "Delivered"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

class OrderChannel(PyEnum):
    DELIVERY = "delivery"
    DINE_IN = "dine-in"
    TAKEAWAY = "takeaway"

class PayMode(PyEnum):
    COD = "COD"
    CARD = "card"
    CASH = "cash"

class ReturnReason(PyEnum):
    WRONG_ITEM = "wrong_item"
    DAMAGED = "damaged"
    QUALITY = "quality"
    MISSING_ITEMS = "missing_items"
    OTHER = "other"

class ReturnStatus(PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class Role(PyEnum):
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"

# ── Menu ────────────────────────────────────────────────────────────────────
class MenuItem(Base, IdMixin, TSMMixin):
    __tablename__ = "menu_item"
    name: Mapped[str] = mapped_column(String(160))
    category: Mapped[str] = mapped_column(String(60), index=True)
    price: Mapped[float] = mapped_column(Numeric(10, 2))
    image_url: Mapped[str] = mapped_column(String(400), default="")
    details: Mapped[str | None] = mapped_column(Text)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)

# ── Orders ──────────────────────────────────────────────────────────────────
class Order(Base, IdMixin, TSMMixin):
    __tablename__ = "order"
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), default=OrderStatus.PLACED, index=True)
    channel: Mapped[OrderChannel] = mapped_column(Enum(OrderChannel), default=OrderChannel.DELIVERY)
    table_number: Mapped[str | None] = mapped_column(String(20))

    # pricing snapshot taken when the order was placed
    subtotal: Mapped[float] = mapped_column(Numeric(10, 2), default=0)
    delivery_fee: Mapped[float] = mapped_column(Numeric(10, 2), default=0)
    discount: Mapped[float] = mapped_column(Numeric(10, 2), default=0)
    tax: Mapped[float] = mapped_column(Numeric(10, 2), default=0)
    total: Mapped[float] = mapped_column(Numeric(10, 2), default=0)
    coupon_code: Mapped[str | None] = mapped_column(String(40))

    payment_method: Mapped[PayMode] = mapped_column(Enum(PayMode), default=PayMode.COD)
    payment_captured: Mapped[bool] = mapped_column(Boolean, default=False)
    refund_status: Mapped[str | None] = mapped_column(String(20))  # pending until the gateway refunds

    delivery_address: Mapped[str] = mapped_column(Text, default="")
    phone: Mapped[str] = mapped_column(String(20), default="")
    notes: Mapped[str] = mapped_column(Text, default="")
    scheduled_for: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_by: Mapped[str | None] = mapped_column(String(36))
    cancel_reason: Mapped[str | None] = mapped_column(Text)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # optimistic concurrency: a stale write raises StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.position")
    timeline: Mapped[list["TimelineEvent"]] = relationship(
        back_populates="order", cascade="all, delete-orphan",
        order_by=lambda: [TimelineEvent.timestamp, TimelineEvent.seq])
    return_request: Mapped[Optional["ReturnRequest"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", uselist=False)

class OrderItem(Base, IdMixin, TSMMixin):
    __tablename__ = "order_item"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id"), index=True)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("menu_item.id"))
    position: Mapped[int] = mapped_column(Integer, default=0)
    name: Mapped[str] = mapped_column(String(160))
    unit_price: Mapped[float] = mapped_column(Numeric(10, 2))  # snapshot at order time
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    notes: Mapped[str] = mapped_column(Text, default="")

    order: Mapped[Order] = relationship(back_populates="items")

class ReturnRequest(Base, IdMixin, TSMMixin):
    __tablename__ = "return_request"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id"), unique=True)
    reason: Mapped[ReturnReason] = mapped_column(Enum(ReturnReason))
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[ReturnStatus] = mapped_column(Enum(ReturnStatus), default=ReturnStatus.PENDING)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    requested_by: Mapped[str | None] = mapped_column(String(36))
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    resolved_by: Mapped[str | None] = mapped_column(String(36))
    resolution_note: Mapped[str | None] = mapped_column(Text)

    order: Mapped[Order] = relationship(back_populates="return_request")

class TimelineEvent(Base, IdMixin):
    """Append-only status log of an order."""
    __tablename__ = "timeline_event"
    __table_args__ = (UniqueConstraint("order_id", "seq"),)
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id"), index=True)
    seq: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(40))
    description: Mapped[str] = mapped_column(Text, default="")
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    actor_user_id: Mapped[str | None] = mapped_column(String(36))

    order: Mapped[Order] = relationship(back_populates="timeline")

# ── Audit ───────────────────────────────────────────────────────────────────
class AuditLog(Base, IdMixin, TSMMixin):
    __tablename__ = "audit_log"
    actor_user_id: Mapped[str | None] = mapped_column(String(36))
    entity: Mapped[str] = mapped_column(String(40))
    entity_id: Mapped[str] = mapped_column(String(36), index=True)
    action: Mapped[str] = mapped_column(String(80))
    before: Mapped[str | None] = mapped_column(Text)
    after: Mapped[str | None] = mapped_column(Text)
