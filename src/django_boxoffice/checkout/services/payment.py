"""Payment adapters between the order orchestrator and the payment providers.

Every rail ends in the same place: a verified :class:`PaymentReference`
handed to :meth:`OrderService.complete_order`. Stripe intents are retrieved
and PayPal orders captured on the server, so a client can never complete an
order by merely claiming it paid.
"""

import logging
from dataclasses import dataclass

import stripe

from django_boxoffice.checkout.exceptions import InvalidRequest, PaymentFailed
from django_boxoffice.checkout.models import Order, PaymentMethod
from django_boxoffice.checkout.paypal_client import PayPalClient
from django_boxoffice.checkout.services.orders import OrderService
from django_boxoffice.checkout.stripe_client import StripeClient
from django_boxoffice.checkout.stripe_utils import to_major_units
from django_boxoffice.settings import get_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PaymentReference:
    """A provider-verified payment, normalised across rails."""

    method: str
    reference: str


def _require_payable(order: Order, method: str) -> None:
    OrderService.ensure_payable(order.pk)
    if order.total_cents == 0:
        raise InvalidRequest("This order is free and needs no payment.")
    if not order.event.accepts(method):
        msg = f"This event does not accept {PaymentMethod(method).label} payments."
        raise InvalidRequest(msg)


def _payment_failed(order: Order, provider: str, detail: object) -> PaymentFailed:
    logger.warning("%s payment for order %s failed: %s", provider, order.reference, detail)
    return PaymentFailed(f"The {provider} payment could not be completed. Please try again.")


class PaymentService:
    """Stateless service for provider round-trips."""

    @staticmethod
    def start_stripe_payment(order: Order) -> str:
        """Create a PaymentIntent for a pending order.

        Returns:
            The intent's ``client_secret`` for Stripe.js.

        Raises:
            OrderNotPending: If the order is not PENDING.
            InvalidRequest: If the order is free or the event takes no cards.
            PaymentFailed: If Stripe rejects the request.
        """
        _require_payable(order, PaymentMethod.STRIPE)
        try:
            intent = StripeClient(order.event).create_payment_intent(order)
        except (stripe.StripeError, ValueError) as exc:
            raise _payment_failed(order, "Stripe", exc) from exc

        logger.info("Initiated Stripe payment for order %s (intent %s)", order.reference, intent.id)
        return intent.client_secret

    @staticmethod
    def verify_stripe_payment(order: Order, payment_intent_id: str) -> PaymentReference:
        """Confirm with Stripe that ``payment_intent_id`` paid this order in full.

        Raises:
            PaymentFailed: If the intent is unknown, unpaid, for another
                order, or for a different amount.
        """
        try:
            intent = StripeClient(order.event).retrieve_payment_intent(payment_intent_id)
        except (stripe.StripeError, ValueError) as exc:
            raise _payment_failed(order, "Stripe", exc) from exc

        metadata = intent.metadata or {}
        if intent.status != "succeeded":
            raise _payment_failed(order, "Stripe", f"intent {intent.id} status is {intent.status}")
        if metadata.get("order_id") != str(order.pk):
            raise _payment_failed(order, "Stripe", f"intent {intent.id} belongs to order {metadata.get('order_id')}")
        if intent.amount != order.total_cents:
            raise _payment_failed(order, "Stripe", f"intent {intent.id} amount {intent.amount} != {order.total_cents}")
        return PaymentReference(PaymentMethod.STRIPE, intent.id)

    @staticmethod
    def start_paypal_payment(order: Order) -> str:
        """Create a PayPal order for a pending order.

        Returns:
            The PayPal order ID for the buyer to approve.

        Raises:
            OrderNotPending: If the order is not PENDING.
            InvalidRequest: If the order is free or the event takes no PayPal.
            PaymentFailed: If PayPal rejects the request.
        """
        _require_payable(order, PaymentMethod.PAYPAL)
        try:
            return PayPalClient(order.event).create_order(order)
        except (RuntimeError, ValueError, KeyError) as exc:
            raise _payment_failed(order, "PayPal", exc) from exc

    @staticmethod
    def verify_paypal_payment(order: Order, paypal_order_id: str) -> PaymentReference:
        """Capture an approved PayPal order and check it paid this order in full.

        Returns:
            A reference carrying the PayPal capture ID.

        Raises:
            PaymentFailed: If the capture fails, is incomplete, or is for the
                wrong order or amount.
        """
        try:
            data = PayPalClient(order.event).capture_order(paypal_order_id)
            unit = data["purchase_units"][0]
            capture = unit["payments"]["captures"][0]
        except (RuntimeError, ValueError, KeyError, IndexError, TypeError) as exc:
            raise _payment_failed(order, "PayPal", exc) from exc

        expected = str(to_major_units(order.total_cents, get_config().currency))
        if data.get("status") != "COMPLETED" or capture.get("status") != "COMPLETED":
            raise _payment_failed(order, "PayPal", f"order {paypal_order_id} status is {data.get('status')}")
        if unit.get("reference_id", order.reference) != order.reference:
            raise _payment_failed(order, "PayPal", f"order {paypal_order_id} is for {unit.get('reference_id')}")
        if capture.get("amount", {}).get("value") != expected:
            raise _payment_failed(order, "PayPal", f"capture amount {capture.get('amount')} != {expected}")
        return PaymentReference(PaymentMethod.PAYPAL, str(capture["id"]))

    @staticmethod
    def complete(order: Order, payment_method: str, provider_reference: str = "") -> Order:
        """Verify a payment on its rail and complete the order.

        Cash and free orders need no provider round-trip; the orchestrator
        records their sentinel references. Zero-total orders always complete
        as free, whatever rail the client picked.

        Args:
            order: The order to complete.
            payment_method: One of :class:`PaymentMethod`.
            provider_reference: The Stripe PaymentIntent ID or the approved
                PayPal order ID.

        Returns:
            The updated order.

        Raises:
            OrderNotPending: If the order is not PENDING.
            OrderExpired: If its hold lapsed. Checked before any provider
                call, so a lapsed order is never captured.
        """
        order = OrderService.ensure_payable(order.pk)
        if order.total_cents == 0:
            payment = PaymentReference(PaymentMethod.FREE, "")
        elif payment_method in (PaymentMethod.STRIPE, PaymentMethod.PAYPAL):
            if not provider_reference:
                raise InvalidRequest("A payment reference is required.")
            if not order.event.accepts(payment_method):
                msg = f"This event does not accept {PaymentMethod(payment_method).label} payments."
                raise InvalidRequest(msg)
            if payment_method == PaymentMethod.STRIPE:
                payment = PaymentService.verify_stripe_payment(order, provider_reference)
            else:
                payment = PaymentService.verify_paypal_payment(order, provider_reference)
        else:
            payment = PaymentReference(payment_method, provider_reference)

        return OrderService.complete_order(order.pk, payment.reference, payment.method)
