"""Tests for the JSON checkout views in django_boxoffice.checkout.views."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from django.urls import reverse
from django.utils import timezone

from django_boxoffice.checkout.models import DiscountCode, Order, Seat, SeatingSection, TicketTier, WaitlistEntry
from django_boxoffice.events.models import Event

# -- Helpers ------------------------------------------------------------------


def _url(name, event, **kwargs):
    return reverse(f"checkout:{name}", kwargs={"event_slug": event.slug, **kwargs})


def _post(client, url, data, **extra):
    return client.post(url, data=data, content_type="application/json", **extra)


def _order_body(tier, **overrides):
    body = {
        "selection_type": "tier",
        "item_id": tier.pk,
        "quantity": 1,
        "buyer": {"email": "ada@example.com", "name": "Ada Lovelace"},
    }
    body.update(overrides)
    return body


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def event():
    return Event.objects.create(
        name="Summer Fest",
        slug="summer-fest",
        stripe_secret_key="sk_test_abc123",
        stripe_publishable_key="pk_test_xyz789",
    )


@pytest.fixture
def tier(event):
    return TicketTier.objects.create(event=event, name="General", slug="general", price_cents=5000, capacity=2)


@pytest.fixture
def discount(event):
    return DiscountCode.objects.create(
        event=event,
        code="TAKE10",
        discount_type=DiscountCode.DiscountType.FIXED_AMOUNT,
        discount_value=1000,
    )


@pytest.fixture
def order_id(client, event, tier):
    response = _post(client, _url("order-create", event), _order_body(tier))
    assert response.status_code == 201
    return response.json()["id"]


# =============================================================================
# TestPriceView
# =============================================================================


@pytest.mark.django_db
class TestPriceView:
    def test_returns_breakdown(self, client, event, tier):
        response = _post(client, _url("price", event), {"item_id": tier.pk, "quantity": 1})

        assert response.status_code == 200
        assert response.json() == {
            "subtotal_cents": 5000,
            "discount_cents": 0,
            "platform_fee_cents": 364,
            "processing_fee_cents": 186,
            "total_cents": 5550,
        }

    def test_includes_discount_outcome(self, client, event, tier, discount):
        response = _post(client, _url("price", event), {"item_id": tier.pk, "discount_code": "take10"})

        data = response.json()
        assert data["total_cents"] == 4482
        assert data["discount"]["valid"] is True
        assert data["discount"]["discount_cents"] == 1000

    def test_invalid_discount_is_explained(self, client, event, tier):
        response = _post(client, _url("price", event), {"item_id": tier.pk, "discount_code": "BOGUS"})

        data = response.json()
        assert data["total_cents"] == 5550
        assert data["discount"] == {
            "valid": False,
            "discount_cents": 0,
            "reason": "invalid_code",
            "message": "This discount code is not valid.",
        }

    def test_bad_quantity(self, client, event, tier):
        response = _post(client, _url("price", event), {"item_id": tier.pk, "quantity": "lots"})

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_REQUEST"

    def test_malformed_json(self, client, event):
        response = client.post(_url("price", event), data="{not json", content_type="application/json")

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_REQUEST"

    def test_get_not_allowed(self, client, event):
        assert client.get(_url("price", event)).status_code == 405

    def test_inactive_event_is_404(self, client, event, tier):
        event.is_active = False
        event.save()

        assert _post(client, _url("price", event), {"item_id": tier.pk}).status_code == 404


# =============================================================================
# TestDiscountView
# =============================================================================


@pytest.mark.django_db
class TestDiscountView:
    def test_valid_code(self, client, event, tier, discount):
        response = _post(client, _url("discount", event), {"item_id": tier.pk, "quantity": 2, "code": "TAKE10"})

        assert response.json() == {"valid": True, "discount_cents": 1000, "reason": None, "message": ""}

    def test_expired_code(self, client, event, tier, discount):
        discount.valid_until = timezone.now() - timedelta(minutes=1)
        discount.save()

        response = _post(client, _url("discount", event), {"item_id": tier.pk, "code": "TAKE10"})

        assert response.status_code == 200
        assert response.json()["reason"] == "expired"


# =============================================================================
# TestSeatHoldView
# =============================================================================


@pytest.mark.django_db
class TestSeatHoldView:
    @pytest.fixture
    def seat(self, event, tier):
        section = SeatingSection.objects.create(event=event, name="Floor", tier=tier)
        return Seat.objects.create(section=section, label="A1")

    def test_holds_and_releases_seats(self, client, event, seat):
        response = _post(client, _url("seat-hold", event), {"seat_ids": [seat.pk]})

        assert response.status_code == 200
        assert response.json()["held"] == [seat.pk]
        seat.refresh_from_db()
        assert seat.status == Seat.Status.HELD

        response = _post(client, _url("seat-hold", event), {"seat_ids": []})

        assert response.json()["released"] == 1
        seat.refresh_from_db()
        assert seat.status == Seat.Status.AVAILABLE

    def test_seat_taken_by_another_buyer(self, client, event, seat):
        seat.status = Seat.Status.SOLD
        seat.save()

        response = _post(client, _url("seat-hold", event), {"seat_ids": [seat.pk]})

        assert response.status_code == 409
        assert response.json()["error"] == "SEATS_UNAVAILABLE"
        assert response.json()["seat_id"] == seat.pk


# =============================================================================
# TestOrderViews
# =============================================================================


@pytest.mark.django_db
class TestOrderViews:
    def test_create_order(self, client, event, tier):
        response = _post(client, _url("order-create", event), _order_body(tier, client_total_cents=5550))

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["total_cents"] == 5550
        assert data["reference"].startswith("ORD-")
        assert "tickets" not in data

    def test_repeated_request_returns_same_order(self, client, event, tier):
        url = _url("order-create", event)
        first = _post(client, url, _order_body(tier), headers={"Idempotency-Key": "attempt-1"})
        second = _post(client, url, _order_body(tier), headers={"Idempotency-Key": "attempt-1"})

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["id"] == first.json()["id"]
        assert Order.objects.count() == 1

    def test_sold_out_offers_waitlist(self, client, event, tier):
        _post(client, _url("order-create", event), _order_body(tier, quantity=2))

        response = _post(client, _url("order-create", event), _order_body(tier))

        assert response.status_code == 409
        assert response.json()["error"] == "SOLD_OUT"
        assert response.json()["waitlist"] is True

    def test_invalid_discount(self, client, event, tier):
        response = _post(client, _url("order-create", event), _order_body(tier, discount_code="BOGUS"))

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_DISCOUNT"
        assert response.json()["reason"] == "invalid_code"

    def test_missing_buyer(self, client, event, tier):
        response = _post(client, _url("order-create", event), _order_body(tier, buyer="ada"))

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_REQUEST"

    def test_order_detail(self, client, event, order_id):
        response = client.get(_url("order-detail", event, order_id=order_id))

        assert response.status_code == 200
        assert response.json()["id"] == order_id

    def test_order_detail_other_event_is_404(self, client, event, order_id):
        other = Event.objects.create(name="Winter Fest", slug="winter-fest")

        assert client.get(_url("order-detail", other, order_id=order_id)).status_code == 404

    def test_complete_with_cash(self, client, event, order_id):
        response = _post(client, _url("order-complete", event, order_id=order_id), {"payment_method": "cash"})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "cash_pending"
        assert data["payment_method"] == "cash"
        assert data["tickets"][0]["status"] == "inactive"

    def test_complete_twice(self, client, event, order_id):
        url = _url("order-complete", event, order_id=order_id)
        _post(client, url, {"payment_method": "cash"})

        response = _post(client, url, {"payment_method": "cash"})

        assert response.status_code == 409
        assert response.json()["error"] == "ORDER_NOT_PENDING"

    def test_free_on_paid_order(self, client, event, order_id):
        response = _post(client, _url("order-complete", event, order_id=order_id), {"payment_method": "free"})

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_REQUEST"

    def test_stripe_intent(self, client, event, order_id):
        with patch("django_boxoffice.checkout.services.payment.StripeClient") as mock_cls:
            mock_cls.return_value.create_payment_intent.return_value = MagicMock(
                id="pi_123",
                client_secret="pi_123_secret",
            )
            response = _post(client, _url("stripe-intent", event, order_id=order_id), {})

        assert response.status_code == 200
        assert response.json() == {"client_secret": "pi_123_secret", "publishable_key": "pk_test_xyz789"}

    def test_paypal_not_accepted(self, client, event, order_id):
        response = _post(client, _url("paypal-order", event, order_id=order_id), {})

        assert response.status_code == 400
        assert "does not accept" in response.json()["message"]


# =============================================================================
# TestWaitlistView
# =============================================================================


@pytest.mark.django_db
class TestWaitlistView:
    def test_join_waitlist(self, client, event, tier):
        response = _post(
            client,
            _url("waitlist", event),
            {"email": "Ada@Example.com", "name": "Ada", "item_id": tier.pk, "quantity": 2},
        )

        assert response.status_code == 201
        assert response.json()["email"] == "ada@example.com"
        entry = WaitlistEntry.objects.get()
        assert entry.tier == tier
        assert entry.quantity == 2

    def test_item_from_other_event(self, client, event):
        other = Event.objects.create(name="Winter Fest", slug="winter-fest")
        other_tier = TicketTier.objects.create(event=other, name="GA", slug="ga", price_cents=100, capacity=1)

        response = _post(client, _url("waitlist", event), {"email": "ada@example.com", "item_id": other_tier.pk})

        assert response.status_code == 400

    def test_invalid_email(self, client, event):
        response = _post(client, _url("waitlist", event), {"email": "nope"})

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_REQUEST"
