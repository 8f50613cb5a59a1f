"""Buyer emails sent in response to checkout signals."""

import logging

from django.conf import settings
from django.core.mail import send_mail
from django.dispatch import receiver

from django_boxoffice.checkout.models import Order
from django_boxoffice.checkout.signals import order_cash_pending, order_completed
from django_boxoffice.checkout.stripe_utils import format_amount
from django_boxoffice.settings import get_config

logger = logging.getLogger(__name__)


def _send(order: Order, subject: str, body: str) -> None:
    sent = send_mail(
        subject,
        body,
        getattr(settings, "DEFAULT_FROM_EMAIL", None),
        [order.buyer_email],
        fail_silently=True,
    )
    if not sent:
        logger.warning("Could not send '%s' to %s for order %s", subject, order.buyer_email, order.reference)


@receiver(order_completed, sender=Order, dispatch_uid="checkout.send_order_confirmation")
def send_order_confirmation(sender: type[Order], order: Order, **kwargs: object) -> None:  # noqa: ARG001
    """Email the buyer their confirmation and ticket codes."""
    codes = "\n".join(f"  {ticket.code}" for ticket in order.tickets.all())
    total = format_amount(order.total_cents, get_config().currency)
    body = (
        f"Hi {order.buyer_name},\n\n"
        f"Your order {order.reference} for {order.event.name} is confirmed.\n"
        f"Total paid: {total}\n\n"
        f"Your tickets:\n{codes}\n"
    )
    _send(order, f"Your tickets for {order.event.name} ({order.reference})", body)


@receiver(order_cash_pending, sender=Order, dispatch_uid="checkout.send_cash_instructions")
def send_cash_instructions(sender: type[Order], order: Order, **kwargs: object) -> None:  # noqa: ARG001
    """Tell a cash buyer how long their tickets are held."""
    total = format_amount(order.total_cents, get_config().currency)
    body = (
        f"Hi {order.buyer_name},\n\n"
        f"Your order {order.reference} for {order.event.name} is reserved.\n"
        f"Please pay {total} in cash before {order.expires_at:%Y-%m-%d %H:%M %Z}, "
        "or the tickets will be released.\n"
    )
    _send(order, f"Cash payment pending for {order.reference}", body)
