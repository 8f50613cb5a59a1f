"""Discount code validation.

Codes are re-validated on every request against the live cart, inventory,
and usage counts, and the discount amount is always recomputed from the
code's rule and the current subtotal. A client-cached amount is never
trusted. Failures come back as a reason code, never as an exception, so the
caller can tell the buyer exactly what went wrong.
"""

import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from decimal import Decimal

from django.db import models
from django.utils import timezone

from django_boxoffice.checkout.models import DiscountCode, Order
from django_boxoffice.checkout.services import inventory
from django_boxoffice.checkout.services.inventory import BUNDLE, TIER, ItemRef
from django_boxoffice.checkout.services.pricing import round_half_up
from django_boxoffice.events.models import Event

logger = logging.getLogger(__name__)

INVALID_CODE = "invalid_code"
EXPIRED = "expired"
NOT_ELIGIBLE = "not_eligible"
LIMIT_REACHED = "limit_reached"

REASON_MESSAGES = {
    INVALID_CODE: "This discount code is not valid.",
    EXPIRED: "This discount code has expired.",
    NOT_ELIGIBLE: "This discount code does not apply to your selection.",
    LIMIT_REACHED: "This discount code has reached its usage limit.",
}

# Orders in these states count towards a buyer's per-code limit.
_LIVE_ORDER_STATUSES = (Order.Status.PENDING, Order.Status.CASH_PENDING, Order.Status.COMPLETED)


@dataclass(frozen=True, slots=True)
class DiscountResult:
    """Outcome of validating a discount code."""

    valid: bool
    discount_cents: int = 0
    reason: str | None = None
    code_id: int | None = None

    @property
    def message(self) -> str:
        """Return a buyer-facing message for a rejection, or an empty string."""
        return REASON_MESSAGES.get(self.reason or "", "")

    def as_dict(self) -> dict[str, object]:
        """Return the result as a plain dict for JSON responses."""
        data = asdict(self)
        data.pop("code_id")
        return data


def compute_discount_cents(code: DiscountCode, subtotal_cents: int) -> int:
    """Return the discount ``code`` grants on ``subtotal_cents``, capped at the subtotal."""
    if subtotal_cents <= 0:
        return 0
    if code.discount_type == DiscountCode.DiscountType.PERCENTAGE:
        amount = round_half_up(Decimal(subtotal_cents) * Decimal(code.discount_value) / 100)
    else:
        amount = code.discount_value
    return max(0, min(amount, subtotal_cents))


class DiscountValidator:
    """Validate discount codes for one event.

    Args:
        event: The event whose codes are looked up.
    """

    def __init__(self, event: Event) -> None:
        self.event = event

    def validate(
        self,
        code: str,
        *,
        buyer_email: str = "",
        cart_items: Sequence[ItemRef],
        subtotal_cents: int,
    ) -> DiscountResult:
        """Validate ``code`` against the buyer, cart, and current subtotal.

        Args:
            code: The code as typed by the buyer (case-insensitive).
            buyer_email: Buyer email for per-buyer usage limits. May be empty
                during an anonymous preview, in which case per-buyer limits
                are checked again at order creation.
            cart_items: The tiers and bundles in the cart.
            subtotal_cents: The current pre-discount subtotal.

        Returns:
            A :class:`DiscountResult`; ``discount_cents`` is only non-zero
            when ``valid`` is True.
        """
        normalized = (code or "").strip().upper()
        discount = (
            DiscountCode.objects.filter(event=self.event, code=normalized, is_active=True).first()
            if normalized
            else None
        )
        now = timezone.now()
        if discount is None or (discount.valid_from and now < discount.valid_from):
            return self._reject(INVALID_CODE, normalized)
        if discount.valid_until and now > discount.valid_until:
            return self._reject(EXPIRED, normalized, discount)
        if discount.max_uses is not None and discount.used_count >= discount.max_uses:
            return self._reject(LIMIT_REACHED, normalized, discount)
        if discount.max_uses_per_buyer is not None and buyer_email:
            used_by_buyer = Order.objects.filter(
                discount_code=discount,
                buyer_email__iexact=buyer_email,
                status__in=_LIVE_ORDER_STATUSES,
            ).count()
            if used_by_buyer >= discount.max_uses_per_buyer:
                return self._reject(LIMIT_REACHED, normalized, discount)
        if not self._is_eligible(discount, cart_items, subtotal_cents):
            return self._reject(NOT_ELIGIBLE, normalized, discount)

        return DiscountResult(
            valid=True,
            discount_cents=compute_discount_cents(discount, subtotal_cents),
            code_id=discount.pk,
        )

    def _is_eligible(self, discount: DiscountCode, cart_items: Sequence[ItemRef], subtotal_cents: int) -> bool:
        """Check scope, stock, and minimum purchase for the cart."""
        if not cart_items:
            return False
        if discount.min_purchase_cents is not None and subtotal_cents < discount.min_purchase_cents:
            return False
        if not all(inventory.is_in_stock(ref) for ref in cart_items):
            return False

        tier_ids = set(discount.eligible_tiers.values_list("pk", flat=True))
        bundle_ids = set(discount.eligible_bundles.values_list("pk", flat=True))
        if not tier_ids and not bundle_ids:
            return True
        for ref in cart_items:
            scope = tier_ids if ref.kind == TIER else bundle_ids if ref.kind == BUNDLE else set()
            if ref.pk not in scope:
                return False
        return True

    def _reject(self, reason: str, code: str, discount: DiscountCode | None = None) -> DiscountResult:
        logger.info(
            "Rejected discount code '%s' for event '%s': %s",
            code,
            self.event.slug,
            reason,
        )
        return DiscountResult(valid=False, reason=reason, code_id=discount.pk if discount else None)


def claim_use(discount_id: int) -> bool:
    """Atomically count one use of a code, refusing once ``max_uses`` is hit.

    Returns:
        True if a use was recorded.
    """
    return (
        DiscountCode.objects.filter(pk=discount_id, is_active=True)
        .filter(models.Q(max_uses__isnull=True) | models.Q(used_count__lt=models.F("max_uses")))
        .update(used_count=models.F("used_count") + 1)
        == 1
    )


def return_use(discount_id: int) -> bool:
    """Give back a use claimed by an order that never completed."""
    return (
        DiscountCode.objects.filter(pk=discount_id, used_count__gt=0).update(
            used_count=models.F("used_count") - 1,
        )
        == 1
    )
