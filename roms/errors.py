"""Error kinds raised by the pricing engine and the order lifecycle.

Each error carries a stable ``code`` for clients and the HTTP status the API
answers with. Rejected transitions raise before anything is written.
"""


class RomsError(Exception):
    code = "ERROR"
    status_code = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or self.__class__.__doc__ or self.code


class InvalidArgument(RomsError, ValueError):
    """Invalid argument"""
    code = "INVALID_ARGUMENT"


class EmptyOrder(RomsError):
    """Order must contain at least one item"""
    code = "EMPTY_ORDER"


class MissingReason(RomsError):
    """A reason is required"""
    code = "MISSING_REASON"


class InvalidCoupon(RomsError):
    """Invalid coupon code"""
    code = "INVALID_COUPON"


class NotCancellable(RomsError):
    """Order can no longer be cancelled"""
    code = "NOT_CANCELLABLE"
    status_code = 409


class NotModifiable(RomsError):
    """Order can no longer be modified"""
    code = "NOT_MODIFIABLE"
    status_code = 409


class NotReturnable(RomsError):
    """Return can only be requested for delivered orders"""
    code = "NOT_RETURNABLE"
    status_code = 409


class DuplicateReturnRequest(RomsError):
    """Return request already submitted"""
    code = "DUPLICATE_RETURN_REQUEST"
    status_code = 409


class InvalidTransition(RomsError):
    """Status change not allowed"""
    code = "INVALID_TRANSITION"
    status_code = 409


class ConcurrentUpdate(RomsError):
    """Order was modified concurrently, reload and retry"""
    code = "CONCURRENT_UPDATE"
    status_code = 409


class OrderNotFound(RomsError):
    """Order not found"""
    code = "ORDER_NOT_FOUND"
    status_code = 404


class Forbidden(RomsError):
    """Not authorized for this order"""
    code = "FORBIDDEN"
    status_code = 403
