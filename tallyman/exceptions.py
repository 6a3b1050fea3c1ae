"""Tallyman exceptions."""


class TallymanError(Exception):
    """
    Structured exception for settlement and ledger operations.

    Carries a stable machine-readable ``code``, a human message and
    arbitrary context ``data``.

    Usage:
        try:
            OrderService.create(...)
        except TallymanError as e:
            if e.code == "INSUFFICIENT_POINTS":
                handle_overdraw(e.data["available"])
    """

    code = "TALLYMAN_ERROR"

    _default_messages = {
        "TALLYMAN_ERROR": "Operation failed",
        "INVALID_CART": "Invalid cart",
        "CUSTOMER_NOT_FOUND": "Customer not found",
        "ORDER_NOT_FOUND": "Order not found",
        "INSUFFICIENT_POINTS": "Insufficient points for redemption",
        "INVALID_TRANSITION": "Invalid order status transition",
        "INVALID_STATUS": "Unknown order status",
        "INVALID_POINTS": "Points must be a non-negative integer",
        "INVALID_SETTING": "Invalid setting value",
        "ORDER_NOT_COMPLETED": "Order is not completed",
        "POINTS_AWARD_FAILED": "Order completed but points were not awarded",
        "LEDGER_INCONSISTENCY": "Points balance does not match ledger",
    }

    def __init__(self, code: str | None = None, message: str | None = None, **data):
        if code is not None:
            self.code = code
        self.message = message or self._default_messages.get(self.code, self.code)
        self.data = data
        super().__init__(f"[{self.code}] {self.message}")

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": self.data}


class InvalidCartError(TallymanError):
    """Malformed or empty line items. Raised before any storage write."""

    code = "INVALID_CART"

    def __init__(self, message: str | None = None, **data):
        super().__init__(message=message, **data)


class CustomerNotFoundError(TallymanError):
    code = "CUSTOMER_NOT_FOUND"

    def __init__(self, message: str | None = None, **data):
        super().__init__(message=message, **data)


class OrderNotFoundError(TallymanError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, message: str | None = None, **data):
        super().__init__(message=message, **data)


class InsufficientPointsError(TallymanError):
    """Redemption exceeds the balance committed at transaction time."""

    code = "INSUFFICIENT_POINTS"

    def __init__(self, message: str | None = None, **data):
        super().__init__(message=message, **data)


class InvalidTransitionError(TallymanError):
    """Status update attempted out of a terminal state."""

    code = "INVALID_TRANSITION"

    def __init__(self, message: str | None = None, **data):
        super().__init__(message=message, **data)


class PointsAwardError(TallymanError):
    """
    Completion committed but the points award failed.

    The order stays completed and unawarded; retry with
    OrderService.award_points() or ``manage.py tallyman_reconcile --retry-awards``.
    """

    code = "POINTS_AWARD_FAILED"

    def __init__(self, message: str | None = None, order=None, **data):
        self.order = order
        super().__init__(message=message, **data)


class LedgerInconsistencyError(TallymanError):
    """Balance and ledger sum disagree. Never repaired automatically."""

    code = "LEDGER_INCONSISTENCY"

    def __init__(self, message: str | None = None, **data):
        super().__init__(message=message, **data)
