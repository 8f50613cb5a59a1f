"""Checkout errors.

Every error is a :class:`~django.core.exceptions.ValidationError` carrying a
stable upper-case ``code`` so API callers can render a precise message and
route sold-out buyers to the waitlist.
"""

from django.core.exceptions import ValidationError


class CheckoutError(ValidationError):
    """Base class for checkout business-rule failures."""

    default_code = "INVALID_REQUEST"
    http_status = 400

    def __init__(self, message: str, *, code: str | None = None, params: dict[str, object] | None = None) -> None:
        super().__init__(message, code=code or self.default_code, params=params)


class InvalidRequest(CheckoutError):
    """Bad quantity, unknown item, missing buyer info, or similar."""

    default_code = "INVALID_REQUEST"


class InvalidDiscount(CheckoutError):
    """A discount code was supplied but did not validate.

    ``reason`` is one of the validator's reason codes (``invalid_code``,
    ``expired``, ``not_eligible``, ``limit_reached``).
    """

    default_code = "INVALID_DISCOUNT"

    def __init__(self, message: str, *, reason: str) -> None:
        super().__init__(message, params={"reason": reason})
        self.reason = reason


class SoldOut(CheckoutError):
    """Not enough inventory left to reserve the requested quantity."""

    default_code = "SOLD_OUT"
    http_status = 409

    def __init__(self, message: str, *, item: object = None) -> None:
        super().__init__(message)
        self.item = item


class SeatsRequired(CheckoutError):
    """A seated tier was requested without exactly one seat per ticket."""

    default_code = "SEATS_REQUIRED"


class SeatsUnavailable(CheckoutError):
    """A requested seat is no longer available."""

    default_code = "SEATS_UNAVAILABLE"
    http_status = 409

    def __init__(self, message: str, *, seat_id: int | None = None) -> None:
        super().__init__(message, params={"seat_id": seat_id})
        self.seat_id = seat_id


class OrderNotPending(CheckoutError):
    """A transition was attempted on an order that is not awaiting it."""

    default_code = "ORDER_NOT_PENDING"
    http_status = 409


class OrderExpired(CheckoutError):
    """The order's reservation lapsed before payment was completed."""

    default_code = "ORDER_EXPIRED"
    http_status = 409


class PaymentFailed(CheckoutError):
    """The payment provider declined or could not verify the payment."""

    default_code = "PAYMENT_FAILED"
    http_status = 402
