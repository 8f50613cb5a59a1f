"""Tests for the Event model in django_boxoffice.events.models."""

import pytest

from django_boxoffice.events.models import Event

# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def event():
    return Event.objects.create(
        name="Summer Fest",
        slug="summer-fest",
        stripe_secret_key="sk_test_abc123",
    )


# =============================================================================
# TestEvent
# =============================================================================


@pytest.mark.django_db
class TestEvent:
    def test_str_returns_name(self, event):
        assert str(event) == "Summer Fest"

    def test_defaults(self, event):
        assert event.payment_model == Event.PaymentModel.PASS_THROUGH
        assert event.charity_discount is False
        assert event.low_price_discount is False
        assert event.is_active is True

    def test_secret_round_trips_through_encryption(self, event):
        event.refresh_from_db()
        assert event.stripe_secret_key == "sk_test_abc123"

    def test_unset_secrets_are_none(self, event):
        assert event.paypal_client_secret is None


# =============================================================================
# TestAccepts
# =============================================================================


@pytest.mark.unit
class TestAccepts:
    def test_default_rails(self):
        event = Event(name="Default", slug="default")

        assert event.accepts("stripe") is True
        assert event.accepts("cash") is True
        assert event.accepts("paypal") is False

    def test_follows_flags(self):
        event = Event(name="Flags", slug="flags", accepts_card=False, accepts_paypal=True, accepts_cash=False)

        assert event.accepts("stripe") is False
        assert event.accepts("paypal") is True
        assert event.accepts("cash") is False

    def test_free_is_always_accepted(self):
        event = Event(name="Nothing", slug="nothing", accepts_card=False, accepts_paypal=False, accepts_cash=False)

        assert event.accepts("free") is True

    def test_unknown_method_is_rejected(self):
        assert Event(name="X", slug="x").accepts("bitcoin") is False
