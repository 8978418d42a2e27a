from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import datetime

PayModeLiteral = Literal["COD", "card", "cash"]
PosOrderTypeLiteral = Literal["dine-in", "takeaway"]
DiscountKindLiteral = Literal["none", "percentage", "fixed"]
ReturnReasonLiteral = Literal["wrong_item", "damaged", "quality", "missing_items", "other"]

class OrderLineIn(BaseModel):
    item_id: str
    quantity: int = 1
    notes: Optional[str] = None

class QuoteLineIn(BaseModel):
    item_id: str
    name: str = ""
    unit_price: float
    quantity: int = 1
    notes: Optional[str] = None

class BreakdownOut(BaseModel):
    subtotal: float
    delivery_fee: float
    discount: float
    tax: float
    total: float

class CouponOut(BaseModel):
    code: str
    amount_off: float
    description: str = ""

class CartQuoteIn(BaseModel):
    items: list[QuoteLineIn] = []
    coupon_code: Optional[str] = None

class CartQuoteOut(BaseModel):
    breakdown: BreakdownOut
    coupon: Optional[CouponOut] = None
    coupon_error: Optional[str] = None
    total_quantity: int

class OrderIn(BaseModel):
    items: list[OrderLineIn]
    coupon_code: Optional[str] = None
    payment_method: PayModeLiteral = "COD"
    payment_captured: bool = False
    scheduled_for: Optional[datetime] = None
    delivery_address: str = ""
    phone: str = ""
    notes: str = ""

class DiscountIn(BaseModel):
    kind: DiscountKindLiteral = "none"
    value: float = 0.0

class PosQuoteIn(BaseModel):
    items: list[QuoteLineIn] = []
    discount: DiscountIn = DiscountIn()

class PosOrderIn(BaseModel):
    items: list[OrderLineIn]
    order_type: PosOrderTypeLiteral
    payment_method: Literal["cash", "card"] = "cash"
    payment_captured: bool = True
    discount: DiscountIn = DiscountIn()
    table_number: Optional[str] = None
    notes: str = ""

class SplitIn(BaseModel):
    total: float
    parts: int = Field(2)

class SplitOut(BaseModel):
    parts: int
    share: float
    shares: list[float]

class CancelIn(BaseModel):
    reason: Optional[str] = None

class ModifyOrderIn(BaseModel):
    items: Optional[list[OrderLineIn]] = None
    delivery_address: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None

class CanModifyOut(BaseModel):
    can_modify: bool
    status: str
    time_remaining: int
    time_elapsed: int
    reason: Optional[str] = None

class ReturnIn(BaseModel):
    reason: Optional[ReturnReasonLiteral] = None
    description: str = ""

class ResolveReturnIn(BaseModel):
    decision: Literal["approved", "rejected"]
    note: Optional[str] = None

class StatusIn(BaseModel):
    status: str
    note: Optional[str] = None

class OrderItemOut(BaseModel):
    item_id: str
    name: str
    unit_price: float
    quantity: int
    notes: str = ""

class ReturnRequestOut(BaseModel):
    reason: str
    description: str
    status: str
    requested_at: datetime
    resolved_at: Optional[datetime] = None
    resolution_note: Optional[str] = None

class TimelineEventOut(BaseModel):
    status: str
    description: str
    timestamp: datetime

class OrderOut(BaseModel):
    id: str
    user_id: str
    status: str
    channel: str
    table_number: Optional[str] = None
    items: list[OrderItemOut]
    subtotal: float
    delivery_fee: float
    discount: float
    tax: float
    total: float
    coupon_code: Optional[str] = None
    delivery_address: str = ""
    phone: str = ""
    notes: str = ""
    payment_method: str
    payment_captured: bool
    refund_status: Optional[str] = None
    scheduled_for: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    created_at: datetime
    version: int
    return_request: Optional[ReturnRequestOut] = None

class CancelOut(BaseModel):
    order: OrderOut
    refund_required: bool

class OrderPage(BaseModel):
    items: list[OrderOut]
    total: int
