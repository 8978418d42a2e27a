from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from roms.config import settings
from roms.db import get_db
from roms.deps import Principal, require_staff
from roms.models.core import OrderChannel, PayMode
from roms.routers.orders import order_out
from roms.schemas.orders import (
    BreakdownOut, DiscountIn, OrderOut, PosOrderIn, PosQuoteIn, SplitIn, SplitOut,
)
from roms.services import lifecycle
from roms.services.pricing import (
    Discount, DiscountKind, LineItem, PricingPolicy, compute_split_share, money, quote_pos,
    split_shares,
)

router = APIRouter(prefix="/pos", tags=["pos"])


def _discount(d: DiscountIn) -> Discount:
    return Discount(kind=DiscountKind(d.kind), value=d.value)


@router.post("/quote", response_model=BreakdownOut)
def pos_quote(body: PosQuoteIn, me: Principal = Depends(require_staff)):
    lines = [
        LineItem(item_id=l.item_id, name=l.name, unit_price=l.unit_price, quantity=l.quantity, notes=l.notes or "")
        for l in body.items
    ]
    breakdown = quote_pos(lines, _discount(body.discount), PricingPolicy.from_settings(settings))
    return BreakdownOut(**breakdown.as_dict())


@router.post("/split", response_model=SplitOut)
def split_bill(body: SplitIn, me: Principal = Depends(require_staff)):
    return SplitOut(
        parts=body.parts,
        share=money(compute_split_share(body.total, body.parts)),
        shares=[money(s) for s in split_shares(body.total, body.parts)],
    )


@router.post("/orders", response_model=OrderOut, status_code=201)
def create_pos_order(body: PosOrderIn, db: Session = Depends(get_db), me: Principal = Depends(require_staff)):
    o = lifecycle.place_pos_order(
        db, me, body.items,
        discount=_discount(body.discount),
        channel=OrderChannel(body.order_type),
        table_number=body.table_number,
        payment_method=PayMode(body.payment_method),
        payment_captured=body.payment_captured,
        notes=body.notes,
    )
    return order_out(o)
