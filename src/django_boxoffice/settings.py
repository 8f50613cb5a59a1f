"""Typed configuration for django-boxoffice.

Reads a single ``DJANGO_BOXOFFICE`` dict from Django settings and exposes it
as composed, frozen dataclasses with sensible defaults.

Usage::

    from django_boxoffice.settings import get_config

    config = get_config()
    config.fees.platform_percent
    config.pending_order_expiry_minutes
    config.currency
"""

import functools
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.test.signals import setting_changed


@dataclass(frozen=True, slots=True)
class StripeConfig:
    """Stripe payment gateway configuration."""

    api_version: str = "2024-12-18"
    webhook_tolerance: int = 300


@dataclass(frozen=True, slots=True)
class PayPalConfig:
    """PayPal Orders API configuration."""

    base_url: str = "https://api-m.sandbox.paypal.com"
    timeout: int = 30


@dataclass(frozen=True, slots=True)
class FeeConfig:
    """Pass-through fee schedule.

    Percentages are strings so they convert to ``Decimal`` without float noise.
    """

    platform_percent: str = "3.7"
    platform_fixed_cents: int = 179
    processing_percent: str = "2.9"
    processing_fixed_cents: int = 30


@dataclass(frozen=True, slots=True)
class BoxOfficeConfig:
    """Top-level django-boxoffice configuration."""

    stripe: StripeConfig = field(default_factory=StripeConfig)
    paypal: PayPalConfig = field(default_factory=PayPalConfig)
    fees: FeeConfig = field(default_factory=FeeConfig)
    pending_order_expiry_minutes: int = 30
    cash_hold_minutes: int = 30
    seat_hold_minutes: int = 10
    max_quantity_per_order: int = 10
    order_reference_prefix: str = "ORD"
    currency: str = "USD"
    free_payment_reference: str = "FREE_ORDER_NO_PAYMENT"
    cash_payment_reference: str = "CASH_PENDING"


@functools.lru_cache(maxsize=1)
def get_config() -> BoxOfficeConfig:
    """Build and return the box office configuration.

    Reads ``settings.DJANGO_BOXOFFICE`` (a plain dict) and returns a frozen
    :class:`BoxOfficeConfig`.  The result is cached; the cache is cleared
    automatically when Django's ``setting_changed`` signal fires (e.g. inside
    ``override_settings``).
    """
    raw = getattr(settings, "DJANGO_BOXOFFICE", {})
    if not isinstance(raw, Mapping):
        msg = "DJANGO_BOXOFFICE must be a mapping (dict-like object)"
        raise TypeError(msg)
    raw_data = dict(raw)

    sections: dict[str, dict[str, object]] = {}
    for name in ("stripe", "paypal", "fees"):
        data = raw_data.pop(name, {})
        if not isinstance(data, Mapping):
            msg = f"DJANGO_BOXOFFICE['{name}'] must be a mapping (dict-like object)"
            raise TypeError(msg)
        sections[name] = dict(data)

    config = BoxOfficeConfig(
        stripe=StripeConfig(**sections["stripe"]),
        paypal=PayPalConfig(**sections["paypal"]),
        fees=FeeConfig(**sections["fees"]),
        **raw_data,
    )
    _validate_config(config)
    return config


def _validate_config(config: BoxOfficeConfig) -> None:
    """Validate high-impact configuration values with clear error messages."""
    for key in (
        "pending_order_expiry_minutes",
        "cash_hold_minutes",
        "seat_hold_minutes",
        "max_quantity_per_order",
    ):
        value = getattr(config, key)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            msg = f"DJANGO_BOXOFFICE['{key}'] must be a positive integer"
            raise ValueError(msg)
    for key in ("currency", "order_reference_prefix", "free_payment_reference", "cash_payment_reference"):
        value = getattr(config, key)
        if not isinstance(value, str) or not value.strip():
            msg = f"DJANGO_BOXOFFICE['{key}'] must be a non-empty string"
            raise ValueError(msg)
    for key in ("platform_percent", "processing_percent"):
        value = getattr(config.fees, key)
        try:
            percent = Decimal(str(value))
        except InvalidOperation:
            percent = Decimal(-1)
        if not Decimal(0) <= percent <= Decimal(100):
            msg = f"DJANGO_BOXOFFICE['fees']['{key}'] must be a percentage between 0 and 100"
            raise ValueError(msg)
    for key in ("platform_fixed_cents", "processing_fixed_cents"):
        value = getattr(config.fees, key)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            msg = f"DJANGO_BOXOFFICE['fees']['{key}'] must be a non-negative integer"
            raise ValueError(msg)


def _clear_config_cache(*, setting: str, **kwargs: object) -> None:  # noqa: ARG001
    """Clear the cached config when Django settings change during tests."""
    if setting == "DJANGO_BOXOFFICE":
        get_config.cache_clear()


setting_changed.connect(_clear_config_cache, dispatch_uid="django_boxoffice.settings.clear_config_cache")
