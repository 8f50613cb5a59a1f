"""Stripe client wrapper for per-event Stripe API operations.

Each event carries its own Stripe keys, so the client is initialized with an
Event instance and uses the modern ``stripe.StripeClient`` pattern (v1
namespace) for all API calls. Events with a connected account get destination
charges, with the order's platform fee taken as the application fee.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import stripe

from django_boxoffice.checkout.stripe_utils import obfuscate_key
from django_boxoffice.settings import get_config

if TYPE_CHECKING:
    from django_boxoffice.checkout.models import Order
    from django_boxoffice.events.models import Event

logger = logging.getLogger(__name__)


class StripeClient:
    """Per-event Stripe API client.

    Wraps ``stripe.StripeClient`` (v1 namespace) and binds every call to the
    event's secret key and the globally configured API version.

    Args:
        event: The event whose Stripe keys will be used.

    Raises:
        ValueError: If the event has no Stripe secret key configured.
    """

    def __init__(self, event: Event) -> None:
        raw_key = event.stripe_secret_key
        if not raw_key:
            msg = (
                f"Event '{event.slug}' does not have a Stripe secret key configured. "
                f"Set 'stripe_secret_key' on the Event record before initializing StripeClient."
            )
            raise ValueError(msg)

        secret_key = str(raw_key)
        self.event = event
        config = get_config()
        self.client = stripe.StripeClient(
            secret_key,
            stripe_version=config.stripe.api_version,
        )

        logger.info("Initialized StripeClient for event '%s' (key %s)", event.slug, obfuscate_key(secret_key))

    def create_payment_intent(self, order: Order) -> stripe.PaymentIntent:
        """Create a Stripe PaymentIntent for the given order.

        The order total is already in the smallest currency unit. The order
        reference doubles as the idempotency key so retried requests return
        the same intent.

        Args:
            order: The pending order to collect payment for.

        Returns:
            The created ``stripe.PaymentIntent``; its ``client_secret`` drives
            the frontend payment flow.

        Raises:
            ValueError: If Stripe returned no client secret.
        """
        currency = get_config().currency
        params: dict[str, object] = {
            "amount": order.total_cents,
            "currency": currency.lower(),
            "receipt_email": order.buyer_email,
            "metadata": {
                "order_id": str(order.pk),
                "event_id": str(self.event.pk),
                "reference": order.reference,
            },
            "description": f"Order {order.reference} for {self.event.name}",
        }
        if self.event.stripe_account_id:
            params["application_fee_amount"] = order.platform_fee_cents
            params["transfer_data"] = {"destination": self.event.stripe_account_id}

        intent = self.client.v1.payment_intents.create(
            params=params,
            options={
                "idempotency_key": order.reference,
            },
        )
        if intent.client_secret is None:
            msg = f"Stripe returned no client_secret for order {order.reference}"
            raise ValueError(msg)
        return intent

    def retrieve_payment_intent(self, intent_id: str) -> stripe.PaymentIntent:
        """Fetch a PaymentIntent so its status and amount can be verified.

        Args:
            intent_id: The Stripe PaymentIntent ID.

        Returns:
            The ``stripe.PaymentIntent`` as Stripe currently sees it.
        """
        return self.client.v1.payment_intents.retrieve(intent_id)
