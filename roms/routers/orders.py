from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from roms.db import get_db
from roms.deps import Principal, require_auth, require_staff
from roms.errors import Forbidden
from roms.models.common import as_utc
from roms.models.core import Order, OrderStatus, PayMode
from roms.schemas.orders import (
    CancelIn, CancelOut, CanModifyOut, ModifyOrderIn, OrderIn, OrderItemOut, OrderOut, OrderPage,
    ResolveReturnIn, ReturnIn, ReturnRequestOut, StatusIn, TimelineEventOut,
)
from roms.services import lifecycle
from roms.services import orders as repo

router = APIRouter(prefix="/orders", tags=["orders"])


def order_out(o: Order) -> OrderOut:
    rr = o.return_request
    return OrderOut(
        id=o.id,
        user_id=o.user_id,
        status=o.status.value,
        channel=o.channel.value,
        table_number=o.table_number,
        items=[
            OrderItemOut(item_id=l.item_id, name=l.name, unit_price=float(l.unit_price),
                         quantity=l.quantity, notes=l.notes or "")
            for l in o.items
        ],
        subtotal=float(o.subtotal),
        delivery_fee=float(o.delivery_fee),
        discount=float(o.discount),
        tax=float(o.tax),
        total=float(o.total),
        coupon_code=o.coupon_code,
        delivery_address=o.delivery_address or "",
        phone=o.phone or "",
        notes=o.notes or "",
        payment_method=o.payment_method.value,
        payment_captured=bool(o.payment_captured),
        refund_status=o.refund_status,
        scheduled_for=as_utc(o.scheduled_for),
        cancel_reason=o.cancel_reason,
        created_at=as_utc(o.created_at),
        version=o.version,
        return_request=ReturnRequestOut(
            reason=rr.reason.value,
            description=rr.description,
            status=rr.status.value,
            requested_at=as_utc(rr.requested_at),
            resolved_at=as_utc(rr.resolved_at),
            resolution_note=rr.resolution_note,
        ) if rr else None,
    )


@router.post("/", response_model=OrderOut, status_code=201)
def place_order(body: OrderIn, db: Session = Depends(get_db), me: Principal = Depends(require_auth)):
    o = lifecycle.place_order(
        db, me.sub, body.items,
        coupon_code=body.coupon_code,
        payment_method=PayMode(body.payment_method),
        payment_captured=body.payment_captured,
        scheduled_for=body.scheduled_for,
        delivery_address=body.delivery_address,
        phone=body.phone,
        notes=body.notes,
    )
    return order_out(o)


@router.get("/", response_model=OrderPage)
def list_orders(
    status: str | None = None,
    page: int = 1,
    size: int = 20,
    db: Session = Depends(get_db),
    me: Principal = Depends(require_auth),
):
    """
    Customers get their own orders, staff get everybody's. Newest first.
    """
    wanted = None
    if status:
        try:
            wanted = OrderStatus(status)
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid status")

    rows, total = repo.list_orders(
        db, user_id=None if me.is_staff else me.sub, status=wanted, page=page, size=size)
    return OrderPage(items=[order_out(o) for o in rows], total=total)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: str, db: Session = Depends(get_db), me: Principal = Depends(require_auth)):
    o = repo.get_order(db, order_id)
    if o.user_id != me.sub and not me.is_staff:
        raise Forbidden()
    return order_out(o)


@router.patch("/{order_id}", response_model=OrderOut)
def modify_order(order_id: str, body: ModifyOrderIn, db: Session = Depends(get_db),
                 me: Principal = Depends(require_auth)):
    o = lifecycle.modify_order(
        db, order_id, me,
        items=body.items,
        delivery_address=body.delivery_address,
        phone=body.phone,
        notes=body.notes,
    )
    return order_out(o)


@router.get("/{order_id}/can-modify", response_model=CanModifyOut)
def can_modify(order_id: str, db: Session = Depends(get_db), me: Principal = Depends(require_auth)):
    check = lifecycle.can_modify(db, order_id, me)
    return CanModifyOut(
        can_modify=check.can_modify,
        status=check.status.value,
        time_remaining=check.time_remaining,
        time_elapsed=check.time_elapsed,
        reason=check.reason,
    )


@router.post("/{order_id}/cancel", response_model=CancelOut)
def cancel_order(order_id: str, body: CancelIn, db: Session = Depends(get_db),
                 me: Principal = Depends(require_auth)):
    result = lifecycle.cancel_order(db, order_id, me, body.reason)
    return CancelOut(order=order_out(result.order), refund_required=result.refund_required)


@router.post("/{order_id}/return", response_model=OrderOut)
def request_return(order_id: str, body: ReturnIn, db: Session = Depends(get_db),
                   me: Principal = Depends(require_auth)):
    o = lifecycle.request_return(db, order_id, me, body.reason, body.description)
    return order_out(o)


@router.post("/{order_id}/return/resolve", response_model=OrderOut)
def resolve_return(order_id: str, body: ResolveReturnIn, db: Session = Depends(get_db),
                   me: Principal = Depends(require_staff)):
    o = lifecycle.resolve_return(db, order_id, me, body.decision, body.note)
    return order_out(o)


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_status(order_id: str, body: StatusIn, db: Session = Depends(get_db),
                  me: Principal = Depends(require_staff)):
    o = lifecycle.advance_status(db, order_id, me, body.status, note=body.note)
    return order_out(o)


@router.get("/{order_id}/timeline", response_model=list[TimelineEventOut])
def get_timeline(order_id: str, db: Session = Depends(get_db), me: Principal = Depends(require_auth)):
    return [
        TimelineEventOut(status=ev.status, description=ev.description, timestamp=as_utc(ev.timestamp))
        for ev in lifecycle.get_timeline(db, order_id, me)
    ]
