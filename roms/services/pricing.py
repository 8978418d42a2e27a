"""Pricing engine: turns line items plus an optional coupon or POS discount
into a priced breakdown.

Everything here is pure. Callers pass the items and a ``PricingPolicy``;
nothing is read from the database or from global state. Money is handled as
``Decimal`` and only converted to float at the API edge.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum as PyEnum
from typing import Iterable, Mapping

from roms.errors import InvalidArgument

ZERO = Decimal("0")
CENT = Decimal("0.01")
INVALID_COUPON_MSG = "Invalid coupon code"


def _d(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    if x is None:
        return ZERO
    # use string to avoid float binary artifacts
    return Decimal(str(x))


def money(x) -> float:
    return float(_d(x).quantize(CENT, rounding=ROUND_HALF_UP))


# ── Value types ─────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class LineItem:
    item_id: str
    name: str
    unit_price: Decimal
    quantity: int = 1
    notes: str = ""

    def __post_init__(self):
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise InvalidArgument("quantity must be an integer")
        if self.quantity < 1:
            raise InvalidArgument("quantity must be at least 1")
        price = _d(self.unit_price)
        if price < 0:
            raise InvalidArgument("unit_price cannot be negative")
        object.__setattr__(self, "unit_price", price)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class Coupon:
    code: str
    amount_off: Decimal
    description: str = ""


@dataclass(frozen=True)
class CouponResult:
    coupon: Coupon | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.coupon is not None


class DiscountKind(str, PyEnum):
    NONE = "none"
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass(frozen=True)
class Discount:
    kind: DiscountKind = DiscountKind.NONE
    value: Decimal = ZERO


@dataclass(frozen=True)
class PricingBreakdown:
    subtotal: Decimal
    delivery_fee: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal

    def as_dict(self) -> dict:
        return {
            "subtotal": money(self.subtotal),
            "delivery_fee": money(self.delivery_fee),
            "discount": money(self.discount),
            "tax": money(self.tax),
            "total": money(self.total),
        }


@dataclass(frozen=True)
class PricingPolicy:
    free_delivery_threshold: Decimal = Decimal("500")
    flat_delivery_fee: Decimal = Decimal("50")
    tax_rate: Decimal = Decimal("0.05")
    # legacy behaviour lets a large discount push the total below zero
    clamp_negative_total: bool = True

    @classmethod
    def from_settings(cls, s) -> "PricingPolicy":
        return cls(
            free_delivery_threshold=_d(s.FREE_DELIVERY_THRESHOLD),
            flat_delivery_fee=_d(s.FLAT_DELIVERY_FEE),
            tax_rate=_d(s.TAX_RATE),
            clamp_negative_total=bool(s.CLAMP_NEGATIVE_TOTAL),
        )


def _coupon(code: str, amount, description: str) -> Coupon:
    return Coupon(code=code, amount_off=_d(amount), description=description)


DEFAULT_COUPONS: Mapping[str, Coupon] = {
    c.code: c
    for c in (
        _coupon("SAVE10", 10, "10 off your order"),
        _coupon("FOODIE5", 5, "5 off for foodies"),
        _coupon("PIZZA25", 25, "25 off pizza night"),
    )
}


# ── Operations ──────────────────────────────────────────────────────────────
def compute_subtotal(items: Iterable) -> Decimal:
    """Sum of unit_price * quantity. Works on LineItem or any object exposing
    ``unit_price`` and ``quantity`` (e.g. persisted order lines)."""
    total = ZERO
    for it in items:
        qty = it.quantity
        if qty < 0:
            raise InvalidArgument("quantity cannot be negative")
        total += _d(it.unit_price) * qty
    return total


def compute_delivery_fee(subtotal, threshold, flat_fee) -> Decimal:
    if _d(subtotal) >= _d(threshold):
        return ZERO
    return _d(flat_fee)


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def apply_coupon(code: str | None, registry: Mapping[str, Coupon] = DEFAULT_COUPONS,
                 previous: Coupon | None = None) -> CouponResult:
    """Look up ``code`` in ``registry``.

    An unknown code never keeps ``previous``: the result carries no coupon and
    an error message, so the caller ends up with nothing applied.
    """
    coupon = registry.get(normalize_code(code))
    if coupon is None:
        return CouponResult(coupon=None, error=INVALID_COUPON_MSG)
    return CouponResult(coupon=coupon)


def apply_discount(kind, value, subtotal) -> Decimal:
    try:
        kind = DiscountKind(kind)
    except ValueError:
        raise InvalidArgument(f"unknown discount kind: {kind}")
    value = _d(value)
    if kind is DiscountKind.PERCENTAGE:
        amount = _d(subtotal) * value / 100
    elif kind is DiscountKind.FIXED:
        amount = value
    else:
        amount = ZERO
    return max(amount, ZERO)


def compute_tax(base, rate) -> Decimal:
    # whole currency units, half up
    return (_d(base) * _d(rate)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def compute_total(subtotal, delivery_fee, discount, tax) -> Decimal:
    return _d(subtotal) + _d(delivery_fee) - _d(discount) + _d(tax)


def _check_parts(parts) -> int:
    if isinstance(parts, bool) or not isinstance(parts, int) or parts < 1:
        raise InvalidArgument("parts must be a positive integer")
    return parts


def compute_split_share(total, parts: int) -> Decimal:
    """Unrounded per-payer share; round with ``money()`` for display."""
    parts = _check_parts(parts)
    return _d(total) / parts


def split_shares(total, parts: int) -> list[Decimal]:
    """Even shares that add back up to ``total`` to the cent; leftover cents
    go to the first payers."""
    parts = _check_parts(parts)
    cents = int((_d(total) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    base, extra = divmod(cents, parts)
    return [Decimal(base + (1 if i < extra else 0)) / 100 for i in range(parts)]


def _finish(policy: PricingPolicy, subtotal, delivery_fee, discount, tax) -> PricingBreakdown:
    total = compute_total(subtotal, delivery_fee, discount, tax)
    if policy.clamp_negative_total and total < 0:
        total = ZERO
    return PricingBreakdown(
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        discount=discount,
        tax=tax,
        total=total,
    )


# ── Policies ────────────────────────────────────────────────────────────────
def quote_checkout(items: Iterable, coupon: Coupon | None = None,
                   policy: PricingPolicy | None = None) -> PricingBreakdown:
    """Customer checkout: delivery fee applies, tax on the pre-discount subtotal."""
    policy = policy or PricingPolicy()
    items = list(items)
    subtotal = compute_subtotal(items)
    # nothing to deliver for an empty cart
    delivery_fee = ZERO if not items else compute_delivery_fee(
        subtotal, policy.free_delivery_threshold, policy.flat_delivery_fee)
    discount = coupon.amount_off if coupon else ZERO
    tax = compute_tax(subtotal, policy.tax_rate)
    return _finish(policy, subtotal, delivery_fee, discount, tax)


def quote_pos(items: Iterable, discount: Discount | None = None,
              policy: PricingPolicy | None = None) -> PricingBreakdown:
    """Counter (POS) sale: no delivery fee, tax on the post-discount subtotal."""
    policy = policy or PricingPolicy()
    discount = discount or Discount()
    subtotal = compute_subtotal(items)
    amount = apply_discount(discount.kind, discount.value, subtotal)
    tax = compute_tax(subtotal - amount, policy.tax_rate)
    return _finish(policy, subtotal, ZERO, amount, tax)
