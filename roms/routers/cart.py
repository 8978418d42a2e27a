from fastapi import APIRouter

from roms.config import settings
from roms.schemas.orders import BreakdownOut, CartQuoteIn, CartQuoteOut, CouponOut
from roms.services.cart import CartStore
from roms.services.pricing import DEFAULT_COUPONS, Coupon, LineItem, PricingPolicy, money

router = APIRouter(prefix="/cart", tags=["cart"])


def _coupon_out(c: Coupon) -> CouponOut:
    return CouponOut(code=c.code, amount_off=money(c.amount_off), description=c.description)


@router.get("/coupons", response_model=list[CouponOut])
def list_coupons():
    return [_coupon_out(c) for c in DEFAULT_COUPONS.values()]


@router.post("/quote", response_model=CartQuoteOut)
def quote(body: CartQuoteIn):
    """
    Price a client-side cart. An unknown coupon code is not an error here:
    the quote comes back without a coupon and with ``coupon_error`` set.
    """
    cart = CartStore()
    for line in body.items:
        cart.add(LineItem(item_id=line.item_id, name=line.name, unit_price=line.unit_price,
                          quantity=line.quantity, notes=line.notes or ""), line.quantity)

    coupon_error = None
    if body.coupon_code is not None:
        coupon_error = cart.apply_coupon(body.coupon_code).error

    breakdown = cart.quote(PricingPolicy.from_settings(settings))
    return CartQuoteOut(
        breakdown=BreakdownOut(**breakdown.as_dict()),
        coupon=_coupon_out(cart.coupon) if cart.coupon else None,
        coupon_error=coupon_error,
        total_quantity=cart.total_quantity,
    )
