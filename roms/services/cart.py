from dataclasses import dataclass, field, replace
from typing import Mapping

from roms.errors import InvalidArgument
from roms.services.pricing import (
    DEFAULT_COUPONS, Coupon, CouponResult, LineItem, PricingBreakdown, PricingPolicy,
    apply_coupon, quote_checkout,
)


@dataclass
class CartStore:
    """A customer's cart: ordered line items and at most one coupon.

    Lines are keyed by ``item_id``. Quantities never drop below 1 through
    ``decrease``; taking a line out is always an explicit ``remove``.
    """

    lines: list[LineItem] = field(default_factory=list)
    coupon: Coupon | None = None

    def _index(self, item_id: str) -> int | None:
        for i, line in enumerate(self.lines):
            if line.item_id == item_id:
                return i
        return None

    @property
    def items(self) -> tuple[LineItem, ...]:
        return tuple(self.lines)

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)

    def add(self, item: LineItem, qty: int = 1) -> None:
        if qty < 1:
            raise InvalidArgument("qty must be at least 1")
        i = self._index(item.item_id)
        if i is None:
            self.lines.append(replace(item, quantity=qty))
        else:
            cur = self.lines[i]
            self.lines[i] = replace(cur, quantity=cur.quantity + qty)

    def remove(self, item_id: str) -> None:
        self.lines = [line for line in self.lines if line.item_id != item_id]

    def set_quantity(self, item_id: str, qty: int) -> None:
        i = self._index(item_id)
        if i is None:
            return
        # LineItem validates qty >= 1
        self.lines[i] = replace(self.lines[i], quantity=qty)

    def increase(self, item_id: str) -> None:
        i = self._index(item_id)
        if i is not None:
            self.set_quantity(item_id, self.lines[i].quantity + 1)

    def decrease(self, item_id: str) -> None:
        i = self._index(item_id)
        if i is not None:
            self.set_quantity(item_id, max(1, self.lines[i].quantity - 1))

    def set_notes(self, item_id: str, notes: str) -> None:
        i = self._index(item_id)
        if i is not None:
            self.lines[i] = replace(self.lines[i], notes=notes or "")

    def apply_coupon(self, code: str | None, registry: Mapping[str, Coupon] = DEFAULT_COUPONS) -> CouponResult:
        result = apply_coupon(code, registry, self.coupon)
        self.coupon = result.coupon
        return result

    def clear(self) -> None:
        self.lines = []
        self.coupon = None

    def quote(self, policy: PricingPolicy | None = None) -> PricingBreakdown:
        return quote_checkout(self.lines, self.coupon, policy)
