"""Checkout pricing.

A pure calculator: the same inputs always produce the same
:class:`PricingResult`. All amounts are integer cents and every fee stage is
rounded half-up on its own, with the processing fee charged on top of the
platform fee the way card processors pass their cost through.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal

from django_boxoffice.events.models import Event
from django_boxoffice.settings import get_config

_HUNDRED = Decimal(100)


@dataclass(frozen=True, slots=True)
class FeeSchedule:
    """Percent-plus-fixed fee schedule applied to pass-through events."""

    platform_percent: Decimal
    platform_fixed_cents: int
    processing_percent: Decimal
    processing_fixed_cents: int

    @classmethod
    def from_settings(cls, *, charity_discount: bool = False, low_price_discount: bool = False) -> FeeSchedule:
        """Build the configured schedule, halving the platform fee for charity or low-price events."""
        fees = get_config().fees
        schedule = cls(
            platform_percent=Decimal(str(fees.platform_percent)),
            platform_fixed_cents=fees.platform_fixed_cents,
            processing_percent=Decimal(str(fees.processing_percent)),
            processing_fixed_cents=fees.processing_fixed_cents,
        )
        if charity_discount or low_price_discount:
            return schedule.halved_platform_fee()
        return schedule

    def halved_platform_fee(self) -> FeeSchedule:
        """Return a copy with the platform percentage and fixed part halved."""
        return FeeSchedule(
            platform_percent=self.platform_percent / 2,
            platform_fixed_cents=round_half_up(Decimal(self.platform_fixed_cents) / 2),
            processing_percent=self.processing_percent,
            processing_fixed_cents=self.processing_fixed_cents,
        )


@dataclass(frozen=True, slots=True)
class PricingResult:
    """Server-side price breakdown for one selection."""

    subtotal_cents: int
    discount_cents: int
    platform_fee_cents: int
    processing_fee_cents: int
    total_cents: int

    @property
    def fees_cents(self) -> int:
        """Return the platform and processing fees combined."""
        return self.platform_fee_cents + self.processing_fee_cents

    @property
    def is_free(self) -> bool:
        """Return True when nothing needs to be charged."""
        return self.total_cents == 0

    def as_dict(self) -> dict[str, int]:
        """Return the breakdown as a plain dict for JSON responses."""
        return asdict(self)


def round_half_up(value: Decimal) -> int:
    """Round a Decimal to the nearest integer, ties away from zero."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def percent_of(amount_cents: int, percent: Decimal) -> int:
    """Return ``percent`` % of ``amount_cents``, rounded half-up to whole cents."""
    return round_half_up(Decimal(amount_cents) * percent / _HUNDRED)


def calculate_price(
    unit_price_cents: int,
    quantity: int,
    discount_cents: int,
    payment_model: str,
    *,
    fees: FeeSchedule | None = None,
) -> PricingResult:
    """Price a selection.

    Args:
        unit_price_cents: Price of one unit in cents.
        quantity: Number of units (must be positive).
        discount_cents: An already-validated discount in cents. It is capped
            at the subtotal, so the reported discount is what was applied.
        payment_model: One of ``Event.PaymentModel``. PREPAY events charge
            the buyer no fees.
        fees: Fee schedule to apply. Defaults to the configured schedule.

    Returns:
        The full price breakdown.

    Raises:
        ValueError: If the price or discount is negative or the quantity is
            not positive.
    """
    if unit_price_cents < 0:
        msg = f"unit_price_cents must not be negative, got {unit_price_cents}"
        raise ValueError(msg)
    if quantity <= 0:
        msg = f"quantity must be positive, got {quantity}"
        raise ValueError(msg)
    if discount_cents < 0:
        msg = f"discount_cents must not be negative, got {discount_cents}"
        raise ValueError(msg)

    subtotal = unit_price_cents * quantity
    applied_discount = min(discount_cents, subtotal)
    after_discount = subtotal - applied_discount

    if payment_model == Event.PaymentModel.PREPAY or after_discount == 0:
        platform_fee = 0
        processing_fee = 0
    else:
        schedule = fees or FeeSchedule.from_settings()
        platform_fee = percent_of(after_discount, schedule.platform_percent) + schedule.platform_fixed_cents
        processing_fee = (
            percent_of(after_discount + platform_fee, schedule.processing_percent) + schedule.processing_fixed_cents
        )

    return PricingResult(
        subtotal_cents=subtotal,
        discount_cents=applied_discount,
        platform_fee_cents=platform_fee,
        processing_fee_cents=processing_fee,
        total_cents=after_discount + platform_fee + processing_fee,
    )


def price_for_event(event: Event, unit_price_cents: int, quantity: int, discount_cents: int = 0) -> PricingResult:
    """Price a selection using the event's payment model and fee discounts."""
    return calculate_price(
        unit_price_cents,
        quantity,
        discount_cents,
        event.payment_model,
        fees=FeeSchedule.from_settings(
            charity_discount=event.charity_discount,
            low_price_discount=event.low_price_discount,
        ),
    )
