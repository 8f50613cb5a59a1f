"""Tests for discount code validation in django_boxoffice.checkout.services.discounts."""

from datetime import timedelta

import pytest
from django.utils import timezone

from django_boxoffice.checkout.models import Bundle, DiscountCode, Order, TicketTier
from django_boxoffice.checkout.services.discounts import (
    EXPIRED,
    INVALID_CODE,
    LIMIT_REACHED,
    NOT_ELIGIBLE,
    DiscountResult,
    DiscountValidator,
    claim_use,
    compute_discount_cents,
    return_use,
)
from django_boxoffice.checkout.services.inventory import ItemRef
from django_boxoffice.events.models import Event

# -- Helpers ------------------------------------------------------------------


def _validate(event, code, item, *, subtotal=5000, buyer_email=""):
    return DiscountValidator(event).validate(
        code,
        buyer_email=buyer_email,
        cart_items=[ItemRef.for_item(item)],
        subtotal_cents=subtotal,
    )


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def event():
    return Event.objects.create(name="Summer Fest", slug="summer-fest")


@pytest.fixture
def tier(event):
    return TicketTier.objects.create(event=event, name="General", slug="general", price_cents=5000, capacity=10)


@pytest.fixture
def vip(event):
    return TicketTier.objects.create(event=event, name="VIP", slug="vip", price_cents=15000, capacity=5)


@pytest.fixture
def bundle(event, tier):
    return Bundle.objects.create(event=event, name="Pair", slug="pair", price_cents=9000, available_count=3)


@pytest.fixture
def code(event):
    return DiscountCode.objects.create(
        event=event,
        code="save20",
        discount_type=DiscountCode.DiscountType.PERCENTAGE,
        discount_value=20,
    )


# =============================================================================
# TestComputeDiscount
# =============================================================================


@pytest.mark.unit
class TestComputeDiscount:
    def test_percentage_rounds_half_up(self):
        code = DiscountCode(discount_type=DiscountCode.DiscountType.PERCENTAGE, discount_value=15)
        assert compute_discount_cents(code, 999) == 150

    def test_fixed_amount(self):
        code = DiscountCode(discount_type=DiscountCode.DiscountType.FIXED_AMOUNT, discount_value=1000)
        assert compute_discount_cents(code, 5000) == 1000

    def test_capped_at_subtotal(self):
        code = DiscountCode(discount_type=DiscountCode.DiscountType.FIXED_AMOUNT, discount_value=7000)
        assert compute_discount_cents(code, 5000) == 5000

    def test_zero_subtotal(self):
        code = DiscountCode(discount_type=DiscountCode.DiscountType.PERCENTAGE, discount_value=50)
        assert compute_discount_cents(code, 0) == 0


# =============================================================================
# TestDiscountValidator
# =============================================================================


@pytest.mark.django_db
class TestDiscountValidator:
    def test_valid_code(self, event, tier, code):
        result = _validate(event, "save20", tier)

        assert result == DiscountResult(valid=True, discount_cents=1000, code_id=code.pk)
        assert result.message == ""

    def test_code_is_case_insensitive(self, event, tier, code):
        assert code.code == "SAVE20"
        assert _validate(event, "  Save20 ", tier).valid is True

    def test_unknown_code(self, event, tier, code):
        result = _validate(event, "NOPE", tier)

        assert result.valid is False
        assert result.reason == INVALID_CODE
        assert result.discount_cents == 0
        assert result.message == "This discount code is not valid."

    def test_blank_code(self, event, tier):
        assert _validate(event, "", tier).reason == INVALID_CODE

    def test_code_from_other_event(self, tier, code):
        other = Event.objects.create(name="Winter Fest", slug="winter-fest")
        assert _validate(other, "SAVE20", tier).reason == INVALID_CODE

    def test_inactive_code(self, event, tier, code):
        code.is_active = False
        code.save()

        assert _validate(event, "SAVE20", tier).reason == INVALID_CODE

    def test_not_yet_valid_code(self, event, tier, code):
        code.valid_from = timezone.now() + timedelta(days=1)
        code.save()

        assert _validate(event, "SAVE20", tier).reason == INVALID_CODE

    def test_expired_code(self, event, tier, code):
        code.valid_until = timezone.now() - timedelta(minutes=1)
        code.save()

        result = _validate(event, "SAVE20", tier)

        assert result.reason == EXPIRED
        assert result.code_id == code.pk

    def test_usage_limit_reached(self, event, tier, code):
        code.max_uses = 3
        code.used_count = 3
        code.save()

        assert _validate(event, "SAVE20", tier).reason == LIMIT_REACHED

    def test_per_buyer_limit(self, event, tier, code):
        code.max_uses_per_buyer = 1
        code.save()
        Order.objects.create(
            reference="ORD-USED0001",
            event=event,
            buyer_email="ada@example.com",
            buyer_name="Ada",
            selection_type=Order.SelectionType.TIER,
            tier=tier,
            quantity=1,
            discount_code=code,
        )

        assert _validate(event, "SAVE20", tier, buyer_email="ADA@example.com").reason == LIMIT_REACHED
        assert _validate(event, "SAVE20", tier, buyer_email="bob@example.com").valid is True
        assert _validate(event, "SAVE20", tier).valid is True

    def test_per_buyer_limit_ignores_closed_orders(self, event, tier, code):
        code.max_uses_per_buyer = 1
        code.save()
        Order.objects.create(
            reference="ORD-GONE0001",
            event=event,
            buyer_email="ada@example.com",
            buyer_name="Ada",
            selection_type=Order.SelectionType.TIER,
            tier=tier,
            quantity=1,
            discount_code=code,
            status=Order.Status.EXPIRED,
        )

        assert _validate(event, "SAVE20", tier, buyer_email="ada@example.com").valid is True

    def test_scoped_to_other_tier(self, event, tier, vip, code):
        code.eligible_tiers.add(vip)

        assert _validate(event, "SAVE20", tier).reason == NOT_ELIGIBLE
        assert _validate(event, "SAVE20", vip, subtotal=15000).discount_cents == 3000

    def test_tier_scope_excludes_bundles(self, event, tier, bundle, code):
        code.eligible_tiers.add(tier)

        assert _validate(event, "SAVE20", bundle, subtotal=9000).reason == NOT_ELIGIBLE

    def test_bundle_scope(self, event, tier, bundle, code):
        code.eligible_bundles.add(bundle)

        assert _validate(event, "SAVE20", bundle, subtotal=9000).valid is True
        assert _validate(event, "SAVE20", tier).reason == NOT_ELIGIBLE

    def test_minimum_purchase(self, event, tier, code):
        code.min_purchase_cents = 10000
        code.save()

        assert _validate(event, "SAVE20", tier, subtotal=5000).reason == NOT_ELIGIBLE
        assert _validate(event, "SAVE20", tier, subtotal=10000).valid is True

    def test_sold_out_item_is_not_eligible(self, event, tier, code):
        tier.sold = tier.capacity
        tier.save()

        assert _validate(event, "SAVE20", tier).reason == NOT_ELIGIBLE

    def test_empty_cart_is_not_eligible(self, event, code):
        result = DiscountValidator(event).validate("SAVE20", cart_items=[], subtotal_cents=0)

        assert result.reason == NOT_ELIGIBLE

    def test_fixed_amount_capped(self, event, tier):
        DiscountCode.objects.create(
            event=event,
            code="BIGFIX",
            discount_type=DiscountCode.DiscountType.FIXED_AMOUNT,
            discount_value=7000,
        )

        assert _validate(event, "BIGFIX", tier).discount_cents == 5000

    def test_as_dict_hides_code_id(self, event, tier, code):
        data = _validate(event, "SAVE20", tier).as_dict()

        assert data == {"valid": True, "discount_cents": 1000, "reason": None}


# =============================================================================
# TestUsageCounting
# =============================================================================


@pytest.mark.django_db
class TestUsageCounting:
    def test_claim_use_respects_max_uses(self, code):
        code.max_uses = 1
        code.save()

        assert claim_use(code.pk) is True
        assert claim_use(code.pk) is False

        code.refresh_from_db()
        assert code.used_count == 1

    def test_claim_use_unlimited(self, code):
        assert claim_use(code.pk) is True
        assert claim_use(code.pk) is True

        code.refresh_from_db()
        assert code.used_count == 2

    def test_claim_use_inactive(self, code):
        code.is_active = False
        code.save()

        assert claim_use(code.pk) is False

    def test_return_use(self, code):
        claim_use(code.pk)

        assert return_use(code.pk) is True
        assert return_use(code.pk) is False

        code.refresh_from_db()
        assert code.used_count == 0
