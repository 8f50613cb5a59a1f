"""Tests for the pricing calculator in django_boxoffice.checkout.services.pricing."""

from decimal import Decimal

import pytest

from django_boxoffice.checkout.services.pricing import (
    FeeSchedule,
    PricingResult,
    calculate_price,
    percent_of,
    price_for_event,
    round_half_up,
)
from django_boxoffice.events.models import Event

PASS_THROUGH = Event.PaymentModel.PASS_THROUGH
PREPAY = Event.PaymentModel.PREPAY


# =============================================================================
# TestRounding
# =============================================================================


@pytest.mark.unit
class TestRounding:
    def test_half_rounds_up(self):
        assert round_half_up(Decimal("185.5")) == 186

    def test_below_half_rounds_down(self):
        assert round_half_up(Decimal("155.49")) == 155

    def test_percent_of(self):
        assert percent_of(5000, Decimal("3.7")) == 185
        assert percent_of(5364, Decimal("2.9")) == 156


# =============================================================================
# TestCalculatePrice
# =============================================================================


@pytest.mark.unit
class TestCalculatePrice:
    def test_pass_through_single_ticket(self):
        result = calculate_price(5000, 1, 0, PASS_THROUGH)

        assert result == PricingResult(
            subtotal_cents=5000,
            discount_cents=0,
            platform_fee_cents=364,
            processing_fee_cents=186,
            total_cents=5550,
        )

    def test_pass_through_with_discount(self):
        result = calculate_price(5000, 1, 1000, PASS_THROUGH)

        assert result.platform_fee_cents == 327
        assert result.processing_fee_cents == 155
        assert result.total_cents == 4482

    def test_fees_scale_with_quantity(self):
        result = calculate_price(2500, 2, 0, PASS_THROUGH)

        assert result.subtotal_cents == 5000
        assert result.total_cents == 5550

    def test_prepay_charges_no_fees(self):
        result = calculate_price(5000, 2, 0, PREPAY)

        assert result.fees_cents == 0
        assert result.total_cents == 10000

    def test_free_ticket_has_no_fees(self):
        result = calculate_price(0, 3, 0, PASS_THROUGH)

        assert result.total_cents == 0
        assert result.is_free

    def test_discount_capped_at_subtotal(self):
        result = calculate_price(5000, 1, 6000, PASS_THROUGH)

        assert result.discount_cents == 5000
        assert result.total_cents == 0
        assert result.fees_cents == 0

    def test_charity_halves_platform_fee(self):
        fees = FeeSchedule.from_settings(charity_discount=True)

        result = calculate_price(5000, 1, 0, PASS_THROUGH, fees=fees)

        assert fees.platform_fixed_cents == 90
        assert result.platform_fee_cents == 183
        assert result.processing_fee_cents == 180
        assert result.total_cents == 5363

    def test_low_price_halves_platform_fee(self):
        assert FeeSchedule.from_settings(low_price_discount=True) == FeeSchedule.from_settings(charity_discount=True)

    def test_total_matches_breakdown(self):
        result = calculate_price(1234, 3, 321, PASS_THROUGH)

        assert result.total_cents == (
            result.subtotal_cents - result.discount_cents + result.platform_fee_cents + result.processing_fee_cents
        )

    def test_is_deterministic(self):
        assert calculate_price(4999, 4, 777, PASS_THROUGH) == calculate_price(4999, 4, 777, PASS_THROUGH)

    @pytest.mark.parametrize(
        ("unit_price", "quantity", "discount"),
        [(-1, 1, 0), (5000, 0, 0), (5000, -2, 0), (5000, 1, -5)],
    )
    def test_rejects_invalid_inputs(self, unit_price, quantity, discount):
        with pytest.raises(ValueError, match="must"):
            calculate_price(unit_price, quantity, discount, PASS_THROUGH)

    def test_custom_fee_settings(self, settings):
        settings.DJANGO_BOXOFFICE = {
            "fees": {
                "platform_percent": "0",
                "platform_fixed_cents": 100,
                "processing_percent": "0",
                "processing_fixed_cents": 0,
            },
        }

        result = calculate_price(5000, 1, 0, PASS_THROUGH)

        assert result.platform_fee_cents == 100
        assert result.processing_fee_cents == 0
        assert result.total_cents == 5100

    def test_as_dict(self):
        data = calculate_price(5000, 1, 0, PASS_THROUGH).as_dict()

        assert data == {
            "subtotal_cents": 5000,
            "discount_cents": 0,
            "platform_fee_cents": 364,
            "processing_fee_cents": 186,
            "total_cents": 5550,
        }


# =============================================================================
# TestPriceForEvent
# =============================================================================


@pytest.mark.unit
class TestPriceForEvent:
    def test_uses_event_payment_model(self):
        event = Event(name="Prepaid", slug="prepaid", payment_model=PREPAY)

        assert price_for_event(event, 5000, 1).total_cents == 5000

    def test_charity_event(self):
        event = Event(name="Charity", slug="charity", charity_discount=True)

        assert price_for_event(event, 5000, 1).total_cents == 5363

    def test_low_price_event(self):
        event = Event(name="Meetup", slug="meetup", low_price_discount=True)

        assert price_for_event(event, 5000, 1).total_cents == 5363

    def test_both_discounts_halve_once(self):
        event = Event(name="Both", slug="both", charity_discount=True, low_price_discount=True)

        assert price_for_event(event, 5000, 1).platform_fee_cents == 183
