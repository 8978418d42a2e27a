"""Order lifecycle: placing orders and the transitions allowed afterwards.

    Placed / Scheduled / Pending  (open)
        -> Processing -> Ready -> OutForDelivery -> Delivered -> Completed
    open -> Cancelled
    Placed -> Placed (modified: lines, address, phone, notes)
    Delivered / Completed -> return request (status unchanged)

Guards run before anything is written; a rejected transition raises and
leaves the order, its timeline and its return request untouched. Each
accepted transition appends one timeline event and one audit row, and is
committed under the order's version check.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy.orm import Session

from roms.config import settings
from roms.errors import (
    ConcurrentUpdate, DuplicateReturnRequest, EmptyOrder, Forbidden, InvalidArgument, InvalidCoupon,
    InvalidTransition, MissingReason, NotCancellable, NotModifiable, NotReturnable,
)
from roms.models.common import as_utc, utcnow
from roms.models.core import (
    Order, OrderChannel, OrderStatus, PayMode, ReturnReason, ReturnRequest, ReturnStatus,
    TimelineEvent,
)
from roms.services import orders as repo
from roms.services.pricing import (
    DEFAULT_COUPONS, Discount, PricingPolicy, apply_coupon, quote_checkout, quote_pos,
)
from roms.util.audit import audit

logger = logging.getLogger("roms.lifecycle")

OPEN_STATUSES = frozenset({OrderStatus.PLACED, OrderStatus.SCHEDULED, OrderStatus.PENDING})
RETURNABLE_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.COMPLETED})
FLOW = (
    OrderStatus.PROCESSING,
    OrderStatus.READY,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
    OrderStatus.COMPLETED,
)
_RANK = {**{s: 0 for s in OPEN_STATUSES}, **{s: i + 1 for i, s in enumerate(FLOW)}}

STATUS_DESCRIPTIONS = {
    OrderStatus.PLACED: "Order placed successfully",
    OrderStatus.SCHEDULED: "Order scheduled",
    OrderStatus.PENDING: "Order received at the counter",
    OrderStatus.PROCESSING: "Restaurant is preparing your order",
    OrderStatus.READY: "Order is ready for pickup/delivery",
    OrderStatus.OUT_FOR_DELIVERY: "Rider is on the way",
    OrderStatus.DELIVERED: "Order delivered successfully",
    OrderStatus.COMPLETED: "Order completed",
    OrderStatus.CANCELLED: "Order cancelled",
}


@dataclass(frozen=True)
class LifecyclePolicy:
    cancel_window: timedelta = timedelta(minutes=5)
    modify_window: timedelta = timedelta(minutes=5)
    return_window: timedelta = timedelta(hours=24)
    max_schedule_ahead: timedelta = timedelta(days=7)

    @classmethod
    def from_settings(cls, s) -> "LifecyclePolicy":
        return cls(
            cancel_window=timedelta(minutes=s.CANCEL_WINDOW_MINUTES),
            modify_window=timedelta(minutes=s.MODIFY_WINDOW_MINUTES),
            return_window=timedelta(hours=s.RETURN_WINDOW_HOURS),
            max_schedule_ahead=timedelta(days=s.MAX_SCHEDULE_DAYS),
        )


@dataclass(frozen=True)
class CancelResult:
    order: Order
    refund_required: bool


@dataclass(frozen=True)
class ModifyCheck:
    can_modify: bool
    status: OrderStatus
    time_remaining: int  # seconds
    time_elapsed: int
    reason: str | None = None


def _policy(policy: LifecyclePolicy | None) -> LifecyclePolicy:
    return policy or LifecyclePolicy.from_settings(settings)


def _pricing(pricing: PricingPolicy | None) -> PricingPolicy:
    return pricing or PricingPolicy.from_settings(settings)


def _require_reason(reason) -> str:
    reason = (reason or "").strip() if isinstance(reason, str) else reason
    if not reason:
        raise MissingReason()
    return reason


def _check_owner_or_staff(order: Order, actor) -> None:
    if order.user_id != actor.sub and not actor.is_staff:
        raise Forbidden()


def _require_staff(actor) -> None:
    if not actor.is_staff:
        raise Forbidden("Staff only")


# ── Guards (pure) ───────────────────────────────────────────────────────────
def check_cancellable(order: Order, actor, now: datetime, policy: LifecyclePolicy) -> None:
    if order.status not in OPEN_STATUSES:
        raise NotCancellable(
            f"Cannot cancel order with status: {order.status.value}. Order is already being prepared.")
    # staff can cancel any open order; customers only inside the grace window
    if actor.is_staff:
        return
    elapsed = now - as_utc(order.created_at)
    if elapsed > policy.cancel_window:
        minutes = int(policy.cancel_window.total_seconds() // 60)
        raise NotCancellable(f"Order can only be cancelled within {minutes} minutes of placement")


def check_modifiable(order: Order, now: datetime, policy: LifecyclePolicy) -> None:
    if now - as_utc(order.created_at) > policy.modify_window:
        minutes = int(policy.modify_window.total_seconds() // 60)
        raise NotModifiable(f"Order can only be modified within {minutes} minutes of placement")
    if order.status != OrderStatus.PLACED:
        raise NotModifiable(f"Order cannot be modified. Current status: {order.status.value}")


def check_returnable(order: Order, now: datetime, policy: LifecyclePolicy) -> None:
    if order.status not in RETURNABLE_STATUSES:
        raise NotReturnable()
    if order.return_request is not None:
        raise DuplicateReturnRequest()
    delivered = as_utc(order.delivered_at or order.updated_at or order.created_at)
    if now - delivered > policy.return_window:
        hours = int(policy.return_window.total_seconds() // 3600)
        raise NotReturnable(f"Return can only be requested within {hours} hours of delivery")


def check_status_change(order: Order, target: OrderStatus) -> None:
    if target == OrderStatus.CANCELLED:
        raise InvalidTransition("Use cancel to cancel an order")
    if order.status in (OrderStatus.CANCELLED, OrderStatus.COMPLETED):
        raise InvalidTransition(f"Order is already {order.status.value}")
    if target in OPEN_STATUSES or _RANK[target] <= _RANK[order.status]:
        raise InvalidTransition(f"Cannot move order from {order.status.value} to {target.value}")


# ── Transitions ─────────────────────────────────────────────────────────────
def place_order(db: Session, user_id: str, requested: Iterable, *,
                coupon_code: str | None = None,
                payment_method: PayMode = PayMode.COD,
                payment_captured: bool = False,
                scheduled_for: datetime | None = None,
                delivery_address: str = "", phone: str = "", notes: str = "",
                now: datetime | None = None,
                pricing: PricingPolicy | None = None,
                policy: LifecyclePolicy | None = None) -> Order:
    now = now or utcnow()
    policy = _policy(policy)
    requested = list(requested)
    if not requested:
        raise EmptyOrder()

    status = OrderStatus.PLACED
    if scheduled_for is not None:
        scheduled_for = as_utc(scheduled_for)
        if scheduled_for <= now:
            raise InvalidArgument("Scheduled time must be in the future")
        if scheduled_for > now + policy.max_schedule_ahead:
            raise InvalidArgument(f"Cannot schedule more than {policy.max_schedule_ahead.days} days in advance")
        status = OrderStatus.SCHEDULED

    coupon = None
    if coupon_code and coupon_code.strip():
        result = apply_coupon(coupon_code, DEFAULT_COUPONS)
        if not result.ok:
            raise InvalidCoupon(result.error)
        coupon = result.coupon

    lines = repo.resolve_line_items(db, requested)
    breakdown = quote_checkout(lines, coupon, _pricing(pricing))

    o = repo.create_order(
        db, lines, breakdown,
        user_id=user_id, status=status, created_at=now,
        channel=OrderChannel.DELIVERY,
        coupon_code=coupon.code if coupon else None,
        payment_method=payment_method,
        payment_captured=payment_captured,
        scheduled_for=scheduled_for,
        delivery_address=(delivery_address or "").strip(),
        phone=(phone or "").strip(),
        notes=(notes or "").strip(),
    )
    repo.append_timeline_event(db, o, status.value, STATUS_DESCRIPTIONS[status], at=now, actor_user_id=user_id)
    db.flush()
    audit(db, user_id, "Order", o.id, "ORDER_" + status.name, after={"total": breakdown.total})
    repo.commit(db)
    logger.info("order %s %s total=%s", o.id, status.value, breakdown.total, extra={"order_id": o.id})
    return o


def place_pos_order(db: Session, actor, requested: Iterable, *,
                    discount: Discount | None = None,
                    channel: OrderChannel = OrderChannel.TAKEAWAY,
                    table_number: str | None = None,
                    payment_method: PayMode = PayMode.CASH,
                    payment_captured: bool = True,
                    notes: str = "",
                    now: datetime | None = None,
                    pricing: PricingPolicy | None = None) -> Order:
    _require_staff(actor)
    now = now or utcnow()
    requested = list(requested)
    if not requested:
        raise EmptyOrder()
    if channel not in (OrderChannel.DINE_IN, OrderChannel.TAKEAWAY):
        raise InvalidArgument("Invalid order type")

    lines = repo.resolve_line_items(db, requested)
    breakdown = quote_pos(lines, discount, _pricing(pricing))

    o = repo.create_order(
        db, lines, breakdown,
        user_id=actor.sub, status=OrderStatus.PENDING, created_at=now,
        channel=channel,
        table_number=table_number or None,
        payment_method=payment_method,
        payment_captured=payment_captured,
        delivery_address=f"Table {table_number or 'N/A'}" if channel == OrderChannel.DINE_IN else "Takeaway",
        phone="POS Order",
        notes=(notes or "").strip(),
    )
    repo.append_timeline_event(db, o, OrderStatus.PENDING.value, STATUS_DESCRIPTIONS[OrderStatus.PENDING],
                               at=now, actor_user_id=actor.sub)
    db.flush()
    audit(db, actor.sub, "Order", o.id, "ORDER_POS", after={"total": breakdown.total})
    repo.commit(db)
    logger.info("pos order %s total=%s", o.id, breakdown.total, extra={"order_id": o.id})
    return o


def cancel_order(db: Session, order_id: str, actor, reason: str | None, *,
                 now: datetime | None = None, policy: LifecyclePolicy | None = None) -> CancelResult:
    now = now or utcnow()
    o = repo.get_order(db, order_id, for_update=True)
    _check_owner_or_staff(o, actor)
    check_cancellable(o, actor, now, _policy(policy))
    reason = _require_reason(reason)

    before = o.status
    o.cancelled_at = now
    o.cancelled_by = actor.sub
    o.cancel_reason = reason
    refund_required = bool(o.payment_captured)
    if refund_required:
        o.refund_status = "pending"
    repo.update_order_status(db, o, OrderStatus.CANCELLED, reason, at=now, actor_user_id=actor.sub)
    audit(db, actor.sub, "Order", o.id, "CANCEL",
          before={"status": before.value}, after={"status": o.status.value, "refund_required": refund_required},
          reason=reason)
    repo.commit(db)
    logger.info("order %s cancelled refund_required=%s", o.id, refund_required, extra={"order_id": o.id})
    return CancelResult(order=o, refund_required=refund_required)


def modify_order(db: Session, order_id: str, actor, *,
                 items: Iterable | None = None,
                 delivery_address: str | None = None,
                 phone: str | None = None,
                 notes: str | None = None,
                 now: datetime | None = None,
                 pricing: PricingPolicy | None = None,
                 policy: LifecyclePolicy | None = None) -> Order:
    """Change a freshly placed order. ``items`` replaces every line and
    re-prices the order with its original coupon; ``None`` leaves a field as is."""
    now = now or utcnow()
    o = repo.get_order(db, order_id, for_update=True)
    if o.user_id != actor.sub:
        raise Forbidden()
    check_modifiable(o, now, _policy(policy))

    before = {"total": o.total}
    if items is not None:
        items = list(items)
        if not items:
            raise EmptyOrder()
        lines = repo.resolve_line_items(db, items)
        coupon = DEFAULT_COUPONS.get(o.coupon_code) if o.coupon_code else None
        repo.set_lines(o, lines, quote_checkout(lines, coupon, _pricing(pricing)))
    if delivery_address and delivery_address.strip():
        o.delivery_address = delivery_address.strip()
    if phone and phone.strip():
        o.phone = phone.strip()
    if notes is not None:
        o.notes = notes.strip()

    repo.append_timeline_event(db, o, "Modified", "Order modified", at=now, actor_user_id=actor.sub)
    audit(db, actor.sub, "Order", o.id, "MODIFY", before=before, after={"total": o.total})
    repo.commit(db)
    logger.info("order %s modified total=%s", o.id, o.total, extra={"order_id": o.id})
    return o


def can_modify(db: Session, order_id: str, actor, *, now: datetime | None = None,
               policy: LifecyclePolicy | None = None) -> ModifyCheck:
    now = now or utcnow()
    policy = _policy(policy)
    o = repo.get_order(db, order_id)
    if o.user_id != actor.sub:
        raise Forbidden()

    elapsed = now - as_utc(o.created_at)
    remaining = max(policy.modify_window - elapsed, timedelta(0))
    reason = None
    try:
        check_modifiable(o, now, policy)
    except NotModifiable as e:
        reason = e.message
    return ModifyCheck(
        can_modify=reason is None,
        status=o.status,
        time_remaining=int(remaining.total_seconds()),
        time_elapsed=int(elapsed.total_seconds()),
        reason=reason,
    )


def request_return(db: Session, order_id: str, actor, reason, description: str = "", *,
                   now: datetime | None = None, policy: LifecyclePolicy | None = None) -> Order:
    try:
        return _attach_return(db, order_id, actor, reason, description, now or utcnow(), _policy(policy))
    except ConcurrentUpdate:
        # rolled back; only a return written by the other side makes this a duplicate
        if repo.get_order(db, order_id).return_request is not None:
            raise DuplicateReturnRequest()
        raise


def _attach_return(db: Session, order_id: str, actor, reason, description: str,
                   now: datetime, policy: LifecyclePolicy) -> Order:
    o = repo.get_order(db, order_id, for_update=True)
    if o.user_id != actor.sub:
        raise Forbidden()
    check_returnable(o, now, policy)
    reason = _require_reason(reason)
    try:
        reason = ReturnReason(reason)
    except ValueError:
        raise InvalidArgument(f"unknown return reason: {reason}")

    o.return_request = ReturnRequest(
        reason=reason,
        description=(description or "").strip(),
        status=ReturnStatus.PENDING,
        requested_at=now,
        requested_by=actor.sub,
    )
    repo.append_timeline_event(db, o, "ReturnRequested", f"Return requested: {reason.value}",
                               at=now, actor_user_id=actor.sub)
    audit(db, actor.sub, "Order", o.id, "RETURN_REQUESTED", after={"reason": reason.value})
    repo.commit(db)
    logger.info("order %s return requested", o.id, extra={"order_id": o.id})
    return o


def resolve_return(db: Session, order_id: str, actor, decision, note: str | None = None, *,
                   now: datetime | None = None) -> Order:
    _require_staff(actor)
    now = now or utcnow()
    try:
        decision = ReturnStatus(decision)
    except ValueError:
        raise InvalidArgument(f"unknown return decision: {decision}")
    if decision == ReturnStatus.PENDING:
        raise InvalidArgument("decision must be approved or rejected")

    o = repo.get_order(db, order_id, for_update=True)
    rr = o.return_request
    if rr is None or rr.status != ReturnStatus.PENDING:
        raise NotReturnable("No pending return request for this order")

    rr.status = decision
    rr.resolved_at = now
    rr.resolved_by = actor.sub
    rr.resolution_note = note
    label = "ReturnApproved" if decision == ReturnStatus.APPROVED else "ReturnRejected"
    repo.append_timeline_event(db, o, label, note or "", at=now, actor_user_id=actor.sub)
    audit(db, actor.sub, "Order", o.id, label.upper(), after={"return_status": decision.value})
    repo.commit(db)
    logger.info("order %s %s", o.id, label, extra={"order_id": o.id})
    return o


def advance_status(db: Session, order_id: str, actor, status, *, note: str | None = None,
                   now: datetime | None = None) -> Order:
    _require_staff(actor)
    now = now or utcnow()
    try:
        target = OrderStatus(status)
    except ValueError:
        raise InvalidArgument("Invalid status")

    o = repo.get_order(db, order_id, for_update=True)
    check_status_change(o, target)

    before = o.status
    if target == OrderStatus.DELIVERED:
        o.delivered_at = now
    repo.update_order_status(db, o, target, note or STATUS_DESCRIPTIONS[target], at=now, actor_user_id=actor.sub)
    audit(db, actor.sub, "Order", o.id, "STATUS", before={"status": before.value}, after={"status": target.value})
    repo.commit(db)
    logger.info("order %s %s -> %s", o.id, before.value, target.value, extra={"order_id": o.id})
    return o


def get_timeline(db: Session, order_id: str, actor) -> list[TimelineEvent]:
    o = repo.get_order(db, order_id)
    _check_owner_or_staff(o, actor)
    return sorted(o.timeline, key=lambda ev: (as_utc(ev.timestamp), ev.seq))
