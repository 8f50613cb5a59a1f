"""Django app configuration for the checkout app."""

from django.apps import AppConfig


class BoxOfficeCheckoutConfig(AppConfig):
    """Configuration for the checkout app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_boxoffice.checkout"
    label = "boxoffice_checkout"
    verbose_name = "Checkout"

    def ready(self) -> None:
        """Import signal receivers."""
        import django_boxoffice.checkout.notifications  # noqa: F401, PLC0415
