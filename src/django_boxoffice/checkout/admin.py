"""Django admin configuration for the checkout app."""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib import admin, messages

from django_boxoffice.checkout.exceptions import CheckoutError
from django_boxoffice.checkout.models import (
    Bundle,
    DiscountCode,
    EventProcessingException,
    Order,
    Reservation,
    Seat,
    SeatingSection,
    StripeEvent,
    Ticket,
    TicketTier,
    WaitlistEntry,
)
from django_boxoffice.checkout.services.orders import OrderService

if TYPE_CHECKING:
    from django.db.models import QuerySet
    from django.http import HttpRequest


@admin.register(TicketTier)
class TicketTierAdmin(admin.ModelAdmin):
    """Admin interface for ticket tiers.

    The ``sold`` and ``reserved`` counters belong to the inventory ledger and
    are read-only here.
    """

    list_display = ("name", "event", "price_cents", "capacity", "sold", "reserved", "is_active", "order")
    list_filter = ("event", "is_active")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}
    readonly_fields = ("sold", "reserved")


@admin.register(Bundle)
class BundleAdmin(admin.ModelAdmin):
    """Admin interface for bundles."""

    list_display = ("name", "event", "price_cents", "available_count", "sold", "reserved", "is_active")
    list_filter = ("event", "is_active")
    search_fields = ("name",)
    filter_horizontal = ("included_tiers",)
    readonly_fields = ("sold", "reserved")


@admin.register(DiscountCode)
class DiscountCodeAdmin(admin.ModelAdmin):
    """Admin interface for discount codes.

    Displays usage counts alongside the code configuration.
    """

    list_display = ("code", "event", "discount_type", "discount_value", "used_count", "max_uses", "is_active")
    list_filter = ("event", "discount_type", "is_active")
    search_fields = ("code",)
    filter_horizontal = ("eligible_tiers", "eligible_bundles")
    readonly_fields = ("used_count",)


class SeatInline(admin.TabularInline):
    """Inline seats within a seating section."""

    model = Seat
    extra = 0
    fields = ("label", "status", "order", "hold_expires_at")
    readonly_fields = ("status", "order", "hold_expires_at")


@admin.register(SeatingSection)
class SeatingSectionAdmin(admin.ModelAdmin):
    """Admin interface for seating sections and their seats."""

    list_display = ("name", "event", "tier")
    list_filter = ("event",)
    inlines = (SeatInline,)


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    """Read-only view of inventory reservations."""

    list_display = ("id", "tier", "bundle", "quantity", "status", "expires_at")
    list_filter = ("status",)
    readonly_fields = ("tier", "bundle", "quantity", "status", "expires_at", "created_at", "updated_at")

    def has_add_permission(self, request: HttpRequest) -> bool:  # noqa: ARG002, D102
        return False

    def has_change_permission(self, request: HttpRequest, obj: Reservation | None = None) -> bool:  # noqa: ARG002, D102
        return False


class TicketInline(admin.TabularInline):
    """Inline display of an order's tickets."""

    model = Ticket
    extra = 0
    readonly_fields = ("code", "tier", "seat", "status")
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Admin interface for orders.

    Money fields and lifecycle state are read-only; state changes go through
    the order service via the bulk actions so inventory stays consistent.
    """

    list_display = ("reference", "buyer_email", "event", "status", "payment_method", "total_cents", "created_at")
    list_filter = ("event", "status", "payment_method")
    search_fields = ("reference", "buyer_email", "buyer_name", "payment_reference")
    readonly_fields = (
        "reference",
        "status",
        "selection_type",
        "tier",
        "bundle",
        "quantity",
        "subtotal_cents",
        "discount_cents",
        "platform_fee_cents",
        "processing_fee_cents",
        "total_cents",
        "discount_code",
        "payment_model",
        "payment_method",
        "payment_reference",
        "reservation",
        "expires_at",
        "completed_at",
        "failure_reason",
    )
    inlines = (TicketInline,)
    actions = ("confirm_cash_payment", "cancel_orders")

    def has_add_permission(self, request: HttpRequest) -> bool:  # noqa: ARG002, D102
        return False

    @admin.action(description="Confirm cash payment for selected orders")
    def confirm_cash_payment(self, request: HttpRequest, queryset: QuerySet[Order]) -> None:
        """Complete CASH_PENDING orders whose cash has been collected."""
        self._run_transition(request, queryset, OrderService.confirm_cash_payment, "Confirmed")

    @admin.action(description="Cancel selected orders")
    def cancel_orders(self, request: HttpRequest, queryset: QuerySet[Order]) -> None:
        """Cancel open orders and release their inventory."""
        self._run_transition(request, queryset, OrderService.cancel_order, "Cancelled")

    def _run_transition(self, request: HttpRequest, queryset: QuerySet[Order], transition: object, verb: str) -> None:
        done = 0
        for order in queryset:
            try:
                transition(order.pk)
            except CheckoutError as exc:
                self.message_user(request, f"{order.reference}: {exc.messages[0]}", level=messages.WARNING)
            else:
                done += 1
        if done:
            self.message_user(request, f"{verb} {done} order(s).", level=messages.SUCCESS)


@admin.register(WaitlistEntry)
class WaitlistEntryAdmin(admin.ModelAdmin):
    """Admin interface for waitlist entries."""

    list_display = ("email", "event", "tier", "bundle", "quantity", "created_at")
    list_filter = ("event",)
    search_fields = ("email", "name")


@admin.register(StripeEvent)
class StripeEventAdmin(admin.ModelAdmin):
    """Read-only admin for Stripe webhook events."""

    list_display = ("stripe_id", "kind", "processed", "livemode", "created_at")
    list_filter = ("kind", "processed", "livemode")
    search_fields = ("stripe_id", "customer_id")
    readonly_fields = (
        "stripe_id",
        "kind",
        "livemode",
        "payload",
        "customer_id",
        "processed",
        "api_version",
        "created_at",
    )

    def has_add_permission(self, request: HttpRequest) -> bool:  # noqa: ARG002, D102
        return False

    def has_change_permission(self, request: HttpRequest, obj: StripeEvent | None = None) -> bool:  # noqa: ARG002, D102
        return False

    def has_delete_permission(self, request: HttpRequest, obj: StripeEvent | None = None) -> bool:  # noqa: ARG002, D102
        return False


@admin.register(EventProcessingException)
class EventProcessingExceptionAdmin(admin.ModelAdmin):
    """Read-only admin for webhook processing errors."""

    list_display = ("message", "event", "created_at")
    list_filter = ("created_at",)
    search_fields = ("message",)
    readonly_fields = ("event", "data", "message", "traceback", "created_at")

    def has_add_permission(self, request: HttpRequest) -> bool:  # noqa: ARG002, D102
        return False

    def has_change_permission(  # noqa: D102
        self,
        request: HttpRequest,  # noqa: ARG002
        obj: EventProcessingException | None = None,  # noqa: ARG002
    ) -> bool:
        return False

    def has_delete_permission(  # noqa: D102
        self,
        request: HttpRequest,  # noqa: ARG002
        obj: EventProcessingException | None = None,  # noqa: ARG002
    ) -> bool:
        return False
