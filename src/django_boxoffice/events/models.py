"""Event model for django-boxoffice."""

from django.db import models
from encrypted_fields import EncryptedCharField


class Event(models.Model):
    """A ticketed event and its checkout settings.

    The central model the checkout app prices against. Stores the payment
    model, fee discounts, accepted payment rails, and per-event provider
    credentials so each organizer's event settles into its own accounts.
    """

    class PaymentModel(models.TextChoices):
        """Who pays the platform and processing fees."""

        PREPAY = "prepay", "Prepaid (organizer bought ticket credits)"
        PASS_THROUGH = "pass_through", "Pass-through (buyer pays fees)"

    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200, unique=True)
    starts_at = models.DateTimeField(null=True, blank=True)
    venue = models.CharField(max_length=300, blank=True, default="")

    payment_model = models.CharField(
        max_length=20,
        choices=PaymentModel.choices,
        default=PaymentModel.PASS_THROUGH,
    )
    charity_discount = models.BooleanField(
        default=False,
        help_text="Halves the platform fee for registered charities.",
    )
    low_price_discount = models.BooleanField(
        default=False,
        help_text="Halves the platform fee for low-price events.",
    )
    accepts_card = models.BooleanField(default=True)
    accepts_paypal = models.BooleanField(default=False)
    accepts_cash = models.BooleanField(default=True)

    stripe_secret_key = EncryptedCharField(max_length=200, blank=True, null=True, default=None)
    stripe_publishable_key = EncryptedCharField(max_length=200, blank=True, null=True, default=None)
    stripe_webhook_secret = EncryptedCharField(max_length=200, blank=True, null=True, default=None)
    stripe_account_id = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Connected account that receives the payout. Empty means the platform account.",
    )
    paypal_client_id = EncryptedCharField(max_length=200, blank=True, null=True, default=None)
    paypal_client_secret = EncryptedCharField(max_length=200, blank=True, null=True, default=None)
    paypal_merchant_id = models.CharField(max_length=100, blank=True, default="")

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-starts_at", "name"]

    def __str__(self) -> str:
        return self.name

    def accepts(self, method: str) -> bool:
        """Return whether buyers may pay for this event with ``method``.

        Free orders never touch a payment rail, so ``"free"`` is always
        accepted.
        """
        return {
            "stripe": self.accepts_card,
            "paypal": self.accepts_paypal,
            "cash": self.accepts_cash,
            "free": True,
        }.get(method, False)
