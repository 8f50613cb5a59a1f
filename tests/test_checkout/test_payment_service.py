"""Tests for the payment adapters in django_boxoffice.checkout.services.payment."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
import stripe
from django.utils import timezone

from django_boxoffice.checkout.exceptions import InvalidRequest, OrderExpired, OrderNotPending, PaymentFailed
from django_boxoffice.checkout.models import Order, PaymentMethod, TicketTier
from django_boxoffice.checkout.services.orders import BuyerInfo, OrderService, Selection
from django_boxoffice.checkout.services.payment import PaymentReference, PaymentService
from django_boxoffice.events.models import Event

# -- Helpers ------------------------------------------------------------------


def _paypal_capture(order, *, status="COMPLETED", value="55.50"):
    return {
        "id": "PAYPAL-ORDER-1",
        "status": status,
        "purchase_units": [
            {
                "reference_id": order.reference,
                "payments": {
                    "captures": [
                        {
                            "id": "CAPTURE-1",
                            "status": status,
                            "amount": {"currency_code": "USD", "value": value},
                        },
                    ],
                },
            },
        ],
    }


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def event():
    return Event.objects.create(
        name="Summer Fest",
        slug="summer-fest",
        accepts_paypal=True,
        stripe_secret_key="sk_test_abc123",
        paypal_client_id="client-id",
        paypal_client_secret="client-secret",
    )


@pytest.fixture
def tier(event):
    return TicketTier.objects.create(event=event, name="General", slug="general", price_cents=5000, capacity=5)


@pytest.fixture
def order(event, tier):
    order, _ = OrderService.create_order(
        event,
        Selection(Order.SelectionType.TIER, tier.pk, 1),
        BuyerInfo(email="ada@example.com", name="Ada Lovelace"),
        session_key="sess-1",
    )
    return order


@pytest.fixture
def mock_stripe():
    with patch("django_boxoffice.checkout.services.payment.StripeClient") as mock_cls:
        yield mock_cls.return_value


@pytest.fixture
def mock_paypal():
    with patch("django_boxoffice.checkout.services.payment.PayPalClient") as mock_cls:
        yield mock_cls.return_value


# =============================================================================
# TestStripe
# =============================================================================


@pytest.mark.django_db
class TestStripe:
    def test_start_returns_client_secret(self, order, mock_stripe):
        mock_stripe.create_payment_intent.return_value = MagicMock(id="pi_123", client_secret="pi_123_secret")

        assert PaymentService.start_stripe_payment(order) == "pi_123_secret"
        mock_stripe.create_payment_intent.assert_called_once_with(order)

    def test_start_wraps_stripe_errors(self, order, mock_stripe):
        mock_stripe.create_payment_intent.side_effect = stripe.StripeError("card network down")

        with pytest.raises(PaymentFailed):
            PaymentService.start_stripe_payment(order)

    def test_start_rejects_event_without_cards(self, event, order, mock_stripe):
        event.accepts_card = False
        event.save()
        order.refresh_from_db()

        with pytest.raises(InvalidRequest, match="does not accept"):
            PaymentService.start_stripe_payment(order)

    def test_start_rejects_closed_order(self, order, mock_stripe):
        OrderService.cancel_order(order.pk)
        order.refresh_from_db()

        with pytest.raises(OrderNotPending):
            PaymentService.start_stripe_payment(order)

    def test_verify_returns_reference(self, order, mock_stripe):
        mock_stripe.retrieve_payment_intent.return_value = MagicMock(
            id="pi_123",
            status="succeeded",
            amount=5550,
            metadata={"order_id": str(order.pk)},
        )

        payment = PaymentService.verify_stripe_payment(order, "pi_123")

        assert payment == PaymentReference(PaymentMethod.STRIPE, "pi_123")

    @pytest.mark.parametrize(
        ("status", "amount", "metadata_order"),
        [
            ("requires_payment_method", 5550, None),
            ("succeeded", 5000, None),
            ("succeeded", 5550, "00000000-0000-0000-0000-000000000000"),
        ],
    )
    def test_verify_rejects_mismatched_intent(self, order, mock_stripe, status, amount, metadata_order):
        mock_stripe.retrieve_payment_intent.return_value = MagicMock(
            id="pi_123",
            status=status,
            amount=amount,
            metadata={"order_id": metadata_order or str(order.pk)},
        )

        with pytest.raises(PaymentFailed):
            PaymentService.verify_stripe_payment(order, "pi_123")

    def test_complete_with_verified_intent(self, order, mock_stripe):
        mock_stripe.retrieve_payment_intent.return_value = MagicMock(
            id="pi_123",
            status="succeeded",
            amount=5550,
            metadata={"order_id": str(order.pk)},
        )

        completed = PaymentService.complete(order, PaymentMethod.STRIPE, "pi_123")

        assert completed.status == Order.Status.COMPLETED
        assert completed.payment_reference == "pi_123"

    def test_declined_payment_leaves_order_pending(self, order, mock_stripe):
        mock_stripe.retrieve_payment_intent.return_value = MagicMock(
            id="pi_123",
            status="requires_payment_method",
            amount=5550,
            metadata={"order_id": str(order.pk)},
        )

        with pytest.raises(PaymentFailed):
            PaymentService.complete(order, PaymentMethod.STRIPE, "pi_123")

        order.refresh_from_db()
        assert order.status == Order.Status.PENDING


# =============================================================================
# TestPayPal
# =============================================================================


@pytest.mark.django_db
class TestPayPal:
    def test_start_returns_paypal_order_id(self, order, mock_paypal):
        mock_paypal.create_order.return_value = "PAYPAL-ORDER-1"

        assert PaymentService.start_paypal_payment(order) == "PAYPAL-ORDER-1"

    def test_start_wraps_transport_errors(self, order, mock_paypal):
        mock_paypal.create_order.side_effect = RuntimeError("PayPal request failed")

        with pytest.raises(PaymentFailed):
            PaymentService.start_paypal_payment(order)

    def test_verify_returns_capture_id(self, order, mock_paypal):
        mock_paypal.capture_order.return_value = _paypal_capture(order)

        payment = PaymentService.verify_paypal_payment(order, "PAYPAL-ORDER-1")

        assert payment == PaymentReference(PaymentMethod.PAYPAL, "CAPTURE-1")
        mock_paypal.capture_order.assert_called_once_with("PAYPAL-ORDER-1")

    def test_verify_rejects_wrong_amount(self, order, mock_paypal):
        mock_paypal.capture_order.return_value = _paypal_capture(order, value="10.00")

        with pytest.raises(PaymentFailed):
            PaymentService.verify_paypal_payment(order, "PAYPAL-ORDER-1")

    def test_verify_rejects_incomplete_capture(self, order, mock_paypal):
        mock_paypal.capture_order.return_value = _paypal_capture(order, status="PENDING")

        with pytest.raises(PaymentFailed):
            PaymentService.verify_paypal_payment(order, "PAYPAL-ORDER-1")

    def test_verify_rejects_malformed_response(self, order, mock_paypal):
        mock_paypal.capture_order.return_value = {"status": "COMPLETED", "purchase_units": []}

        with pytest.raises(PaymentFailed):
            PaymentService.verify_paypal_payment(order, "PAYPAL-ORDER-1")

    def test_complete_with_capture(self, order, mock_paypal):
        mock_paypal.capture_order.return_value = _paypal_capture(order)

        completed = PaymentService.complete(order, PaymentMethod.PAYPAL, "PAYPAL-ORDER-1")

        assert completed.status == Order.Status.COMPLETED
        assert completed.payment_method == PaymentMethod.PAYPAL
        assert completed.payment_reference == "CAPTURE-1"

    def test_lapsed_order_is_never_captured(self, order, mock_paypal):
        Order.objects.filter(pk=order.pk).update(expires_at=timezone.now() - timedelta(minutes=1))
        order.refresh_from_db()

        with pytest.raises(OrderExpired):
            PaymentService.complete(order, PaymentMethod.PAYPAL, "PAYPAL-ORDER-1")

        mock_paypal.capture_order.assert_not_called()
        order.refresh_from_db()
        assert order.status == Order.Status.EXPIRED
        order.tier.refresh_from_db()
        assert order.tier.reserved == 0

    def test_swept_order_is_never_captured(self, order, mock_paypal):
        OrderService.expire_orders(now=order.expires_at + timedelta(minutes=1))

        with pytest.raises(OrderExpired):
            PaymentService.complete(order, PaymentMethod.PAYPAL, "PAYPAL-ORDER-1")

        mock_paypal.capture_order.assert_not_called()

    def test_start_rejects_lapsed_order(self, order, mock_paypal):
        Order.objects.filter(pk=order.pk).update(expires_at=timezone.now() - timedelta(minutes=1))

        with pytest.raises(OrderExpired):
            PaymentService.start_paypal_payment(order)

        mock_paypal.create_order.assert_not_called()


# =============================================================================
# TestComplete
# =============================================================================


@pytest.mark.django_db
class TestComplete:
    def test_requires_provider_reference(self, order):
        with pytest.raises(InvalidRequest, match="reference"):
            PaymentService.complete(order, PaymentMethod.STRIPE)

    def test_cash_needs_no_provider(self, order, mock_stripe, mock_paypal):
        pending = PaymentService.complete(order, PaymentMethod.CASH)

        assert pending.status == Order.Status.CASH_PENDING
        mock_stripe.retrieve_payment_intent.assert_not_called()
        mock_paypal.capture_order.assert_not_called()

    def test_zero_total_completes_as_free(self, event, mock_stripe):
        free = TicketTier.objects.create(event=event, name="Free", slug="free", price_cents=0, capacity=5)
        order, _ = OrderService.create_order(
            event,
            Selection(Order.SelectionType.TIER, free.pk, 1),
            BuyerInfo(email="ada@example.com", name="Ada Lovelace"),
            session_key="sess-1",
        )

        completed = PaymentService.complete(order, PaymentMethod.STRIPE, "pi_ignored")

        assert completed.payment_method == PaymentMethod.FREE
        mock_stripe.retrieve_payment_intent.assert_not_called()

    def test_free_payment_for_free_order_only(self, order):
        with pytest.raises(InvalidRequest):
            PaymentService.complete(order, PaymentMethod.FREE)

    def test_rejects_non_pending_order(self, order):
        PaymentService.complete(order, PaymentMethod.CASH)
        order.refresh_from_db()

        with pytest.raises(OrderNotPending):
            PaymentService.complete(order, PaymentMethod.CASH)
