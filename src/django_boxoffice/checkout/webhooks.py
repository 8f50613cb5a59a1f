"""Stripe webhook endpoint for card payments.

Stripe reports the outcome of a PaymentIntent asynchronously. The endpoint
checks the signature with the event's own webhook secret, stores each Stripe
event once (keyed by its Stripe ID), and hands it to the handler registered
for its type with :func:`handles`.

A succeeded intent completes its order through
:meth:`OrderService.complete_order`, the same path the buyer's confirmation
request takes, so whichever arrives second finds the order no longer
PENDING and leaves it alone.

Mount it per event::

    path("<slug:event_slug>/webhooks/stripe/", stripe_webhook)
"""

from __future__ import annotations

import logging
import traceback
from typing import TYPE_CHECKING

import stripe
from django.http import HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from django_boxoffice.checkout.exceptions import OrderNotPending, PaymentFailed
from django_boxoffice.checkout.models import (
    EventProcessingException,
    Order,
    PaymentMethod,
    StripeEvent,
)
from django_boxoffice.checkout.services.orders import OrderService
from django_boxoffice.events.models import Event
from django_boxoffice.settings import get_config

if TYPE_CHECKING:
    from collections.abc import Callable

    from django.http import HttpRequest

logger = logging.getLogger(__name__)

HANDLERS: dict[str, type[StripeHandler]] = {}


def handles(kind: str) -> Callable[[type[StripeHandler]], type[StripeHandler]]:
    """Class decorator registering a handler for one Stripe event type.

    Args:
        kind: Stripe event type, e.g. ``"payment_intent.succeeded"``.
    """

    def decorator(handler_class: type[StripeHandler]) -> type[StripeHandler]:
        handler_class.kind = kind
        HANDLERS[kind] = handler_class
        return handler_class

    return decorator


class StripeHandler:
    """Processes one stored :class:`StripeEvent` for the event whose secret verified it.

    Subclasses implement :meth:`handle`. :meth:`run` skips events already
    marked processed, marks the event processed after a clean run, and
    records a failure as an ``EventProcessingException`` before re-raising.
    """

    kind: str = ""

    def __init__(self, stripe_event: StripeEvent, event: Event) -> None:
        self.stripe_event = stripe_event
        self.event = event

    @property
    def intent(self) -> dict[str, object]:
        """The ``data.object`` of the event payload, or ``{}``."""
        return payload_object(self.stripe_event.payload)

    @property
    def order_id(self) -> str:
        """The checkout order ID the intent was created for, from its metadata."""
        metadata = self.intent.get("metadata")
        if not isinstance(metadata, dict):
            return ""
        return str(metadata.get("order_id") or "")

    def run(self) -> None:
        """Handle the event once."""
        if self.stripe_event.processed:
            logger.info("Stripe event %s was handled before", self.stripe_event.stripe_id)
            return
        try:
            self.handle()
        except Exception:
            self.record_failure()
            raise
        StripeEvent.objects.filter(pk=self.stripe_event.pk).update(processed=True)
        self.stripe_event.processed = True

    def handle(self) -> None:
        """Act on the event.

        Raises:
            NotImplementedError: On the base class.
        """
        raise NotImplementedError

    def record_failure(self) -> None:
        """Store the active exception's traceback against the event."""
        tb = traceback.format_exc()
        logger.error("Stripe handler %s failed on %s:\n%s", self.kind or "?", self.stripe_event.stripe_id, tb)
        EventProcessingException.objects.create(
            event=self.stripe_event,
            data=str(self.stripe_event.payload),
            message=tb.strip().splitlines()[-1][:500] if tb.strip() else "",
            traceback=tb,
        )


def payload_object(payload: object) -> dict[str, object]:
    """Return ``payload["data"]["object"]`` when every level is a dict."""
    data = payload.get("data") if isinstance(payload, dict) else None
    obj = data.get("object") if isinstance(data, dict) else None
    return obj if isinstance(obj, dict) else {}


@handles("payment_intent.succeeded")
class IntentSucceeded(StripeHandler):
    """Complete the order a successful intent paid for.

    Only orders of the event whose webhook secret verified the delivery are
    considered. An order another request already completed is left as it is.
    An intent whose amount differs from the order total, or that lands after
    the order expired, raises, so the event is kept for manual refund review.
    """

    def handle(self) -> None:
        intent_id = str(self.intent.get("id") or "")
        order = Order.objects.filter(pk=self.order_id, event=self.event).first() if self.order_id else None
        if order is None:
            logger.warning(
                "Intent %s names no order of event %s (order id %r)",
                intent_id,
                self.event.slug,
                self.order_id,
            )
            return

        paid = int(self.intent.get("amount") or 0)
        if paid != order.total_cents:
            msg = f"Intent {intent_id} charged {paid} but order {order.reference} totals {order.total_cents}."
            raise PaymentFailed(msg)

        try:
            OrderService.complete_order(order.pk, intent_id, PaymentMethod.STRIPE)
        except OrderNotPending:
            order.refresh_from_db(fields=["status"])
            logger.warning(
                "Intent %s arrived for order %s in state %s; ignored",
                intent_id,
                order.reference,
                order.status,
            )


@handles("payment_intent.payment_failed")
class IntentFailed(StripeHandler):
    """Log a declined card; the order stays PENDING until its hold lapses."""

    def handle(self) -> None:
        error = self.intent.get("last_payment_error")
        reason = error.get("message") if isinstance(error, dict) else None
        logger.warning(
            "Card payment declined for intent %s (order %s): %s",
            self.intent.get("id"),
            self.order_id or "?",
            reason if isinstance(reason, str) else "no reason given",
        )


def _store_event(stripe_payload: dict) -> StripeEvent:
    obj = payload_object(stripe_payload)
    return StripeEvent.objects.create(
        stripe_id=stripe_payload["id"],
        kind=stripe_payload["type"],
        livemode=bool(stripe_payload.get("livemode", False)),
        payload=dict(stripe_payload),
        customer_id=str(obj.get("customer") or ""),
        api_version=str(stripe_payload.get("api_version") or ""),
    )


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest, event_slug: str) -> HttpResponse:
    """Accept a Stripe webhook delivery for one event.

    Stripe retries any non-2xx answer, so every outcome, including bad
    signatures and handler failures, is answered with 200 and logged.
    """
    ok = HttpResponse(status=200)
    event = Event.objects.filter(slug=event_slug, is_active=True).first()
    if event is None:
        logger.warning("Stripe webhook for unknown event %r", event_slug)
        return ok
    if not event.stripe_webhook_secret:
        logger.error("Stripe webhook for %r but the event has no webhook secret", event_slug)
        return ok

    try:
        stripe_payload = stripe.Webhook.construct_event(
            request.body,
            request.headers.get("Stripe-Signature", ""),
            str(event.stripe_webhook_secret),
            tolerance=get_config().stripe.webhook_tolerance,
        )
    except (stripe.SignatureVerificationError, ValueError):
        logger.warning("Rejected Stripe webhook for %r: bad payload or signature", event_slug)
        return ok

    if StripeEvent.objects.filter(stripe_id=stripe_payload["id"]).exists():
        logger.info("Stripe event %s delivered again; ignored", stripe_payload["id"])
        return ok

    stripe_event = _store_event(stripe_payload)
    handler_class = HANDLERS.get(stripe_event.kind)
    if handler_class is None:
        logger.info("Stored Stripe event %s of unhandled type %s", stripe_event.stripe_id, stripe_event.kind)
        return ok

    try:
        handler_class(stripe_event, event).run()
    except Exception:
        logger.exception("Stripe event %s (%s) could not be handled", stripe_event.stripe_id, stripe_event.kind)
    return ok
