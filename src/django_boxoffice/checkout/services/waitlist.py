"""Waitlist for sold-out tiers and bundles."""

import logging

from django.core.exceptions import ValidationError
from django.core.validators import validate_email

from django_boxoffice.checkout.exceptions import InvalidRequest
from django_boxoffice.checkout.models import Bundle, TicketTier, WaitlistEntry
from django_boxoffice.events.models import Event

logger = logging.getLogger(__name__)


class WaitlistService:
    """Stateless service for joining an event's waitlist."""

    @staticmethod
    def join(
        event: Event,
        *,
        email: str,
        name: str = "",
        quantity: int = 1,
        tier: TicketTier | None = None,
        bundle: Bundle | None = None,
    ) -> WaitlistEntry:
        """Add a buyer to the waitlist, or update their existing entry.

        A buyer has at most one entry per event item; joining again replaces
        the requested quantity and name.

        Raises:
            InvalidRequest: If the email is invalid, the quantity is not
                positive, or the item belongs to another event.
        """
        email = (email or "").strip().lower()
        try:
            validate_email(email)
        except ValidationError:
            raise InvalidRequest("A valid email address is required to join the waitlist.") from None
        if quantity < 1:
            raise InvalidRequest("Quantity must be at least 1.")
        for item in (tier, bundle):
            if item is not None and item.event_id != event.pk:
                raise InvalidRequest("The selected item does not belong to this event.")

        entry, created = WaitlistEntry.objects.update_or_create(
            event=event,
            tier=tier,
            bundle=bundle,
            email=email,
            defaults={"name": name.strip(), "quantity": quantity},
        )
        logger.info(
            "%s waitlist entry for %s on event '%s' (%s)",
            "Created" if created else "Updated",
            email,
            event.slug,
            tier or bundle or "any item",
        )
        return entry
