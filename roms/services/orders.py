"""Order persistence over SQLAlchemy: create/get/list orders, status updates
and the append-only timeline."""
from datetime import datetime
from typing import Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from roms.errors import ConcurrentUpdate, InvalidArgument, OrderNotFound
from roms.models.common import utcnow
from roms.models.core import MenuItem, Order, OrderItem, OrderStatus, TimelineEvent
from roms.services.pricing import LineItem, PricingBreakdown


def resolve_line_items(db: Session, requested: Iterable) -> list[LineItem]:
    """Turn requested lines (``item_id``, ``quantity``, ``notes``) into priced
    LineItems using current catalog prices."""
    requested = list(requested)
    ids = {r.item_id for r in requested}
    found = {m.id: m for m in db.query(MenuItem).filter(MenuItem.id.in_(ids), MenuItem.deleted_at.is_(None))}

    lines = []
    for r in requested:
        m = found.get(r.item_id)
        if m is None:
            raise InvalidArgument(f"unknown menu item: {r.item_id}")
        if not m.is_available:
            raise InvalidArgument(f"{m.name} is not available")
        lines.append(LineItem(
            item_id=m.id, name=m.name, unit_price=m.price,
            quantity=r.quantity, notes=getattr(r, "notes", None) or "",
        ))
    return lines


def create_order(db: Session, lines: list[LineItem], breakdown: PricingBreakdown, *,
                 user_id: str, status: OrderStatus, created_at: datetime | None = None,
                 **metadata) -> Order:
    o = Order(user_id=user_id, status=status, created_at=created_at or utcnow(), **metadata)
    set_lines(o, lines, breakdown)
    db.add(o)
    return o


def set_lines(order: Order, lines: list[LineItem], breakdown: PricingBreakdown) -> Order:
    """Replace the order's lines and its pricing snapshot together."""
    order.items = [
        OrderItem(item_id=l.item_id, position=i, name=l.name, unit_price=l.unit_price,
                  quantity=l.quantity, notes=l.notes)
        for i, l in enumerate(lines)
    ]
    order.subtotal = breakdown.subtotal
    order.delivery_fee = breakdown.delivery_fee
    order.discount = breakdown.discount
    order.tax = breakdown.tax
    order.total = breakdown.total
    return order


def get_order(db: Session, order_id: str, *, for_update: bool = False) -> Order:
    try:
        # a locking read also checks the version of an already loaded order
        o = db.get(Order, order_id, with_for_update=for_update or None)
    except StaleDataError:
        db.rollback()
        raise ConcurrentUpdate()
    if o is None or o.deleted_at is not None:
        raise OrderNotFound()
    return o


def list_orders(db: Session, *, user_id: str | None = None, status: OrderStatus | None = None,
                page: int = 1, size: int = 20) -> tuple[list[Order], int]:
    q = db.query(Order).filter(Order.deleted_at.is_(None))
    if user_id:
        q = q.filter(Order.user_id == user_id)
    if status:
        q = q.filter(Order.status == status)

    page = max(page, 1)
    size = size if size >= 1 else 20
    total = q.count()
    rows = (
        q.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * size)
        .limit(size)
        .all()
    )
    return rows, total


def append_timeline_event(db: Session, order: Order, status: str, description: str = "",
                          at: datetime | None = None, actor_user_id: str | None = None) -> TimelineEvent:
    at = at or utcnow()
    ev = TimelineEvent(
        seq=len(order.timeline),
        status=status,
        description=description,
        timestamp=at,
        actor_user_id=actor_user_id,
    )
    order.timeline.append(ev)
    # touch the order so the version check covers every append
    order.updated_at = at
    return ev


def update_order_status(db: Session, order: Order, status: OrderStatus, reason: str | None = None,
                        at: datetime | None = None, actor_user_id: str | None = None) -> Order:
    order.status = status
    append_timeline_event(db, order, status.value, reason or "", at=at, actor_user_id=actor_user_id)
    return order


def commit(db: Session) -> None:
    try:
        db.commit()
    except (StaleDataError, IntegrityError):
        db.rollback()
        raise ConcurrentUpdate()
