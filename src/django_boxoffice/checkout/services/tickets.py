"""Ticket issuance for completed and cash-pending orders."""

import secrets
import string

from django.utils import timezone

from django_boxoffice.checkout.models import Order, Seat, Ticket

_CODE_CHARS = string.ascii_uppercase + string.digits


def _generate_code() -> str:
    return "TKT-" + "".join(secrets.choice(_CODE_CHARS) for _ in range(12))


def issue_tickets(order: Order, *, active: bool = True) -> list[Ticket]:
    """Create one ticket per admission in ``order``.

    A tier order yields ``quantity`` tickets, paired with the order's seats in
    seat order when it has any. A bundle order yields one ticket per included
    tier for each bundle bought.

    Args:
        order: The order being finalized.
        active: Issue ``INACTIVE`` tickets when False (cash not yet collected).

    Returns:
        The created tickets.
    """
    status = Ticket.Status.ACTIVE if active else Ticket.Status.INACTIVE
    if order.selection_type == Order.SelectionType.BUNDLE:
        tiers = list(order.bundle.included_tiers.order_by("order", "pk")) if order.bundle else []
        admissions = [(tier, None) for _ in range(order.quantity) for tier in tiers]
    else:
        seats: list[Seat | None] = list(order.seats.order_by("pk"))
        seats += [None] * (order.quantity - len(seats))
        admissions = [(order.tier, seat) for seat in seats]

    return Ticket.objects.bulk_create(
        [Ticket(order=order, tier=tier, seat=seat, code=_generate_code(), status=status) for tier, seat in admissions]
    )


def activate_tickets(order: Order) -> int:
    """Activate an order's inactive tickets once payment is collected."""
    return order.tickets.filter(status=Ticket.Status.INACTIVE).update(
        status=Ticket.Status.ACTIVE,
        updated_at=timezone.now(),
    )


def cancel_tickets(order: Order) -> int:
    """Void every ticket still attached to ``order``."""
    return order.tickets.exclude(status=Ticket.Status.CANCELLED).update(
        status=Ticket.Status.CANCELLED,
        updated_at=timezone.now(),
    )
