"""Inventory, discount, order, ticket, and payment-event models for django-boxoffice.

All monetary values are integer minor units (cents).
"""

import uuid

from django.db import models
from django.utils import timezone


class PaymentMethod(models.TextChoices):
    """Payment rails an order can be completed through."""

    STRIPE = "stripe", "Card (Stripe)"
    PAYPAL = "paypal", "PayPal"
    CASH = "cash", "Cash at the door"
    FREE = "free", "Free"


class TicketTier(models.Model):
    """A priced class of ticket with a capacity and sold counter.

    ``sold`` and ``reserved`` are only ever changed through
    :mod:`django_boxoffice.checkout.services.inventory`; a database check
    constraint keeps ``sold + reserved`` within ``capacity``.
    """

    event = models.ForeignKey(
        "boxoffice_events.Event",
        on_delete=models.CASCADE,
        related_name="ticket_tiers",
    )
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200)
    description = models.TextField(blank=True, default="")
    price_cents = models.PositiveIntegerField()
    early_bird_price_cents = models.PositiveIntegerField(null=True, blank=True)
    early_bird_until = models.DateTimeField(null=True, blank=True)
    capacity = models.PositiveIntegerField()
    sold = models.PositiveIntegerField(default=0)
    reserved = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["order", "name"]
        unique_together = [("event", "slug")]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(capacity__gte=models.F("sold") + models.F("reserved")),
                name="checkout_tickettier_not_oversold",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.event.slug})"

    @property
    def current_price_cents(self) -> int:
        """Return the unit price in effect right now, honouring the early-bird window."""
        if (
            self.early_bird_price_cents is not None
            and self.early_bird_until is not None
            and timezone.now() < self.early_bird_until
        ):
            return self.early_bird_price_cents
        return self.price_cents

    @property
    def remaining(self) -> int:
        """Return the number of units not yet sold or held."""
        return max(0, self.capacity - self.sold - self.reserved)


class Bundle(models.Model):
    """A fixed-price package of several tiers sold as one unit."""

    event = models.ForeignKey(
        "boxoffice_events.Event",
        on_delete=models.CASCADE,
        related_name="bundles",
    )
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200)
    description = models.TextField(blank=True, default="")
    price_cents = models.PositiveIntegerField()
    regular_price_cents = models.PositiveIntegerField(
        default=0,
        help_text="Sum of the included tiers' prices, shown as the struck-through price.",
    )
    included_tiers = models.ManyToManyField(
        TicketTier,
        blank=True,
        related_name="bundles",
    )
    available_count = models.PositiveIntegerField()
    sold = models.PositiveIntegerField(default=0)
    reserved = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        unique_together = [("event", "slug")]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(available_count__gte=models.F("sold") + models.F("reserved")),
                name="checkout_bundle_not_oversold",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.event.slug})"

    @property
    def current_price_cents(self) -> int:
        """Return the bundle price (bundles have no early-bird window)."""
        return self.price_cents

    @property
    def remaining(self) -> int:
        """Return the number of bundles not yet sold or held."""
        return max(0, self.available_count - self.sold - self.reserved)


class Reservation(models.Model):
    """A time-bounded hold against a tier's or bundle's inventory.

    Exactly one of ``tier`` or ``bundle`` is set. A reservation is ACTIVE
    until it is committed (payment confirmed), released (cancelled), or
    expired (its ``expires_at`` passed before completion).
    """

    class Status(models.TextChoices):
        """Lifecycle states for an inventory reservation."""

        ACTIVE = "active", "Active"
        COMMITTED = "committed", "Committed"
        RELEASED = "released", "Released"
        EXPIRED = "expired", "Expired"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tier = models.ForeignKey(
        TicketTier,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="reservations",
    )
    bundle = models.ForeignKey(
        Bundle,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="reservations",
    )
    quantity = models.PositiveIntegerField()
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
    )
    expires_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(tier__isnull=False, bundle__isnull=True)
                    | models.Q(tier__isnull=True, bundle__isnull=False)
                ),
                name="checkout_reservation_exactly_one_item",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "expires_at"], name="checkout_res_status_exp_idx"),
        ]

    def __str__(self) -> str:
        item = self.tier or self.bundle
        return f"{self.quantity}x {item} ({self.status})"


class SeatingSection(models.Model):
    """A block of seats on the event's seating chart.

    A tier linked to at least one section can only be bought together with
    one seat assignment per ticket.
    """

    event = models.ForeignKey(
        "boxoffice_events.Event",
        on_delete=models.CASCADE,
        related_name="seating_sections",
    )
    name = models.CharField(max_length=200)
    tier = models.ForeignKey(
        TicketTier,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="seating_sections",
    )

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.event.slug})"


class Seat(models.Model):
    """A single seat and its live status.

    ``HELD`` is a soft hold placed while the buyer is picking seats and is
    only meaningful until ``hold_expires_at``. ``RESERVED`` seats belong to a
    pending order; ``SOLD`` seats to a completed one.
    """

    class Status(models.TextChoices):
        """Live availability of a seat."""

        AVAILABLE = "available", "Available"
        HELD = "held", "Held"
        RESERVED = "reserved", "Reserved"
        SOLD = "sold", "Sold"

    section = models.ForeignKey(
        SeatingSection,
        on_delete=models.CASCADE,
        related_name="seats",
    )
    label = models.CharField(max_length=50)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.AVAILABLE,
    )
    session_key = models.CharField(max_length=40, blank=True, default="")
    hold_expires_at = models.DateTimeField(null=True, blank=True)
    order = models.ForeignKey(
        "Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="seats",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["section", "label"]
        unique_together = [("section", "label")]

    def __str__(self) -> str:
        return f"{self.section.name} {self.label} ({self.status})"


class DiscountCode(models.Model):
    """A discount code redeemable at checkout.

    When either ``eligible_tiers`` or ``eligible_bundles`` is non-empty the
    code is scoped: it only discounts carts whose items are all in scope.
    """

    class DiscountType(models.TextChoices):
        """How ``discount_value`` is interpreted."""

        PERCENTAGE = "percentage", "Percentage discount"
        FIXED_AMOUNT = "fixed_amount", "Fixed amount discount"

    event = models.ForeignKey(
        "boxoffice_events.Event",
        on_delete=models.CASCADE,
        related_name="discount_codes",
    )
    code = models.CharField(max_length=100)
    discount_type = models.CharField(
        max_length=20,
        choices=DiscountType.choices,
        default=DiscountType.PERCENTAGE,
    )
    discount_value = models.PositiveIntegerField(
        help_text="Percentage (1-100) or amount in cents depending on discount_type.",
    )
    eligible_tiers = models.ManyToManyField(
        TicketTier,
        blank=True,
        related_name="discount_codes",
        help_text="Tiers this code applies to. Empty (with no bundles) means all.",
    )
    eligible_bundles = models.ManyToManyField(
        Bundle,
        blank=True,
        related_name="discount_codes",
        help_text="Bundles this code applies to. Empty (with no tiers) means all.",
    )
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    used_count = models.PositiveIntegerField(default=0)
    max_uses_per_buyer = models.PositiveIntegerField(null=True, blank=True)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)
    min_purchase_cents = models.PositiveIntegerField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [("event", "code")]

    def __str__(self) -> str:
        return f"{self.code} ({self.event.slug})"

    def save(self, *args: object, **kwargs: object) -> None:
        """Store codes upper-case so lookups are case-insensitive."""
        self.code = self.code.strip().upper()
        super().save(*args, **kwargs)


class Order(models.Model):
    """A buyer's order for one tier or bundle selection.

    Created ``PENDING`` with its inventory reserved, then driven to exactly
    one terminal outcome by :class:`~django_boxoffice.checkout.services.orders.OrderService`.
    Money fields are a server-side snapshot of the pricing at creation time.
    """

    class Status(models.TextChoices):
        """Lifecycle states for an order."""

        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        CASH_PENDING = "cash_pending", "Awaiting cash payment"
        CANCELLED = "cancelled", "Cancelled"
        EXPIRED = "expired", "Expired"

    class SelectionType(models.TextChoices):
        """What kind of sellable item the order is for."""

        TIER = "tier", "Ticket tier"
        BUNDLE = "bundle", "Bundle"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    reference = models.CharField(
        max_length=100,
        unique=True,
        help_text='Unique order reference, e.g. "ORD-A1B2C3D4".',
    )
    event = models.ForeignKey(
        "boxoffice_events.Event",
        on_delete=models.CASCADE,
        related_name="orders",
    )
    buyer_email = models.EmailField()
    buyer_name = models.CharField(max_length=200)
    session_key = models.CharField(max_length=40, blank=True, default="")
    idempotency_key = models.CharField(max_length=100, blank=True, default="")

    selection_type = models.CharField(max_length=10, choices=SelectionType.choices)
    tier = models.ForeignKey(
        TicketTier,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    bundle = models.ForeignKey(
        Bundle,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    quantity = models.PositiveIntegerField()

    subtotal_cents = models.PositiveIntegerField(default=0)
    discount_cents = models.PositiveIntegerField(default=0)
    platform_fee_cents = models.PositiveIntegerField(default=0)
    processing_fee_cents = models.PositiveIntegerField(default=0)
    total_cents = models.PositiveIntegerField(default=0)
    discount_code = models.ForeignKey(
        DiscountCode,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    payment_model = models.CharField(max_length=20, blank=True, default="")
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        blank=True,
        default="",
    )
    payment_reference = models.CharField(max_length=200, blank=True, default="")

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    reservation = models.OneToOneField(
        Reservation,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order",
    )
    expires_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.CharField(max_length=300, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["event", "session_key", "idempotency_key"],
                condition=~models.Q(idempotency_key="") & ~models.Q(session_key=""),
                name="checkout_order_unique_idempotency_key",
            ),
            models.CheckConstraint(
                condition=models.Q(
                    total_cents=models.F("subtotal_cents")
                    - models.F("discount_cents")
                    + models.F("platform_fee_cents")
                    + models.F("processing_fee_cents"),
                ),
                name="checkout_order_total_matches_breakdown",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "expires_at"], name="checkout_order_status_exp_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.reference} ({self.status})"

    @property
    def item(self) -> TicketTier | Bundle | None:
        """Return the tier or bundle this order is for."""
        if self.selection_type == self.SelectionType.BUNDLE:
            return self.bundle
        return self.tier

    @property
    def is_terminal(self) -> bool:
        """Return True once the order can no longer change state on its own."""
        return self.status in {self.Status.COMPLETED, self.Status.CANCELLED, self.Status.EXPIRED}


class Ticket(models.Model):
    """An admission issued for a completed (or cash-pending) order.

    Cash orders get ``INACTIVE`` tickets that staff activate once the
    physical payment has been collected.
    """

    class Status(models.TextChoices):
        """Whether the ticket admits its holder."""

        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive (awaiting payment)"
        CANCELLED = "cancelled", "Cancelled"

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="tickets",
    )
    tier = models.ForeignKey(
        TicketTier,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="tickets",
    )
    seat = models.ForeignKey(
        Seat,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="tickets",
    )
    code = models.CharField(max_length=32, unique=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.code} ({self.status})"


class WaitlistEntry(models.Model):
    """A buyer waiting for a sold-out tier or bundle to free up."""

    event = models.ForeignKey(
        "boxoffice_events.Event",
        on_delete=models.CASCADE,
        related_name="waitlist_entries",
    )
    tier = models.ForeignKey(
        TicketTier,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="waitlist_entries",
    )
    bundle = models.ForeignKey(
        Bundle,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="waitlist_entries",
    )
    email = models.EmailField()
    name = models.CharField(max_length=200, blank=True, default="")
    quantity = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        verbose_name_plural = "waitlist entries"

    def __str__(self) -> str:
        return f"{self.email} waiting for {self.tier or self.bundle or self.event}"


class StripeEvent(models.Model):
    """A raw Stripe webhook event, stored for deduplication and auditing."""

    stripe_id = models.CharField(max_length=255, unique=True)
    kind = models.CharField(max_length=255)
    livemode = models.BooleanField(default=False)
    payload = models.JSONField(default=dict)
    customer_id = models.CharField(max_length=255, blank=True, default="")
    processed = models.BooleanField(default=False)
    api_version = models.CharField(max_length=64, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.kind} ({self.stripe_id})"


class EventProcessingException(models.Model):
    """A captured failure while processing a Stripe webhook event."""

    event = models.ForeignKey(
        StripeEvent,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="exceptions",
    )
    data = models.TextField(blank=True, default="")
    message = models.CharField(max_length=500)
    traceback = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.message[:80]
