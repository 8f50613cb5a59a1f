"""Management command to expire unpaid orders and lapsed holds.

Run it periodically (cron, systemd timer) so abandoned checkouts give their
inventory back even when nobody is buying::

    manage.py expire_orders
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.core.management.base import BaseCommand

from django_boxoffice.checkout.services import inventory
from django_boxoffice.checkout.services.orders import OrderService

if TYPE_CHECKING:
    import argparse


class Command(BaseCommand):
    """Expire unpaid orders, stale reservations, and lapsed seat holds."""

    help = "Expire unpaid orders and release their inventory, seats, and discount uses"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Register command-line arguments.

        Args:
            parser: The argument parser to add arguments to.
        """
        parser.add_argument(
            "--keep-holds",
            action="store_true",
            help="Leave lapsed seat holds in place (they are ignored once lapsed either way).",
        )

    def handle(self, **options: object) -> None:
        """Execute the expiry sweep."""
        orders = OrderService.expire_orders()
        reservations = inventory.expire_stale()
        holds = 0 if options["keep_holds"] else inventory.clear_lapsed_holds()

        self.stdout.write(
            self.style.SUCCESS(
                f"Expired {orders} orders and {reservations} orphaned reservations; cleared {holds} seat holds"
            )
        )
