"""Django admin configuration for the events app."""

from django import forms
from django.contrib import admin

from django_boxoffice.events.models import Event

SECRET_PLACEHOLDER = "•" * 12


class SecretInput(forms.PasswordInput):
    """Password widget that shows a placeholder instead of the real value.

    When a value already exists in the database the widget renders
    ``SECRET_PLACEHOLDER`` as the visible value so admins know a key is
    set, but the actual secret never appears in the HTML source.
    """

    def format_value(self, value: str | None) -> str:
        """Return a dot placeholder when a value exists, empty string otherwise."""
        if value:
            return SECRET_PLACEHOLDER
        return ""


class SecretField(forms.CharField):
    """Char field that preserves the stored value when left unchanged.

    If the submitted value is empty or equals the placeholder, the field
    returns the original database value so provider credentials are never
    accidentally blanked.
    """

    widget = SecretInput

    def __init__(self, **kwargs: object) -> None:
        """Set sensible defaults for secret fields."""
        kwargs.setdefault("required", False)
        super().__init__(**kwargs)
        self.widget.attrs.setdefault("autocomplete", "off")

    def has_changed(self, initial: str | None, data: str | None) -> bool:
        """Treat placeholder or blank submissions as unchanged."""
        if not data or data == SECRET_PLACEHOLDER:
            return False
        return super().has_changed(initial, data)

    def clean(self, value: str | None) -> str | None:
        """Return the stored value when the field is left blank or unchanged."""
        if not value or value == SECRET_PLACEHOLDER:
            return self.initial
        return super().clean(value)


class EventForm(forms.ModelForm):
    """Event form that masks Stripe and PayPal secrets in the admin."""

    stripe_secret_key = SecretField()
    stripe_publishable_key = SecretField()
    stripe_webhook_secret = SecretField()
    paypal_client_id = SecretField()
    paypal_client_secret = SecretField()

    class Meta:
        model = Event
        exclude: list[str] = []

    def __init__(self, *args: object, **kwargs: object) -> None:
        """Seed each secret field with the stored value it falls back to."""
        super().__init__(*args, **kwargs)
        for name, field in self.fields.items():
            if isinstance(field, SecretField):
                field.initial = getattr(self.instance, name, None)


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    """Admin interface for events and their checkout settings."""

    form = EventForm
    list_display = ("name", "slug", "starts_at", "payment_model", "is_active")
    list_filter = ("is_active", "payment_model")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}

    fieldsets = (
        (
            None,
            {
                "fields": ("name", "slug", "starts_at", "venue"),
            },
        ),
        (
            "Checkout",
            {
                "fields": (
                    "payment_model",
                    "charity_discount",
                    "low_price_discount",
                    "accepts_card",
                    "accepts_paypal",
                    "accepts_cash",
                ),
            },
        ),
        (
            "Integrations",
            {
                "fields": (
                    "stripe_secret_key",
                    "stripe_publishable_key",
                    "stripe_webhook_secret",
                    "stripe_account_id",
                    "paypal_client_id",
                    "paypal_client_secret",
                    "paypal_merchant_id",
                ),
                "classes": ("collapse",),
            },
        ),
        (
            "Status",
            {
                "fields": ("is_active",),
            },
        ),
    )
