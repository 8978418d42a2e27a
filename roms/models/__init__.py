# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    OrderStatus, OrderChannel, PayMode, ReturnReason, ReturnStatus, Role,

    # Menu
    MenuItem,

    # Orders / returns / timeline
    Order, OrderItem, ReturnRequest, TimelineEvent,

    # Audit
    AuditLog,
)

__all__ = [
    "OrderStatus", "OrderChannel", "PayMode", "ReturnReason", "ReturnStatus", "Role",
    "MenuItem",
    "Order", "OrderItem", "ReturnRequest", "TimelineEvent",
    "AuditLog",
]
