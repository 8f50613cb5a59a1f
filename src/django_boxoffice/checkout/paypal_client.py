"""PayPal Orders v2 client for per-event PayPal API operations.

Uses the client-credentials OAuth flow with the event's own PayPal app
credentials. When the event names a merchant, the order's platform fee is
collected through ``payment_instruction.platform_fees``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from django_boxoffice.checkout.stripe_utils import to_major_units
from django_boxoffice.settings import get_config

if TYPE_CHECKING:
    from django_boxoffice.checkout.models import Order
    from django_boxoffice.events.models import Event

logger = logging.getLogger(__name__)


class PayPalClient:
    """Per-event PayPal API client.

    Args:
        event: The event whose PayPal credentials will be used.

    Raises:
        ValueError: If the event has no PayPal client credentials configured.
    """

    def __init__(self, event: Event) -> None:
        if not event.paypal_client_id or not event.paypal_client_secret:
            msg = (
                f"Event '{event.slug}' does not have PayPal credentials configured. "
                f"Set 'paypal_client_id' and 'paypal_client_secret' on the Event record."
            )
            raise ValueError(msg)

        self.event = event
        self._config = get_config().paypal
        self._auth = (str(event.paypal_client_id), str(event.paypal_client_secret))
        self._token: str | None = None

    def _request(self, path: str, **kwargs: object) -> dict[str, object]:
        """POST to the PayPal API and return the decoded JSON body.

        Raises:
            RuntimeError: If the request fails or PayPal answers with an error.
        """
        url = f"{self._config.base_url.rstrip('/')}{path}"
        try:
            response = httpx.post(url, timeout=self._config.timeout, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            msg = f"PayPal request to {path} failed: {exc}"
            raise RuntimeError(msg) from exc
        return response.json()

    def _access_token(self) -> str:
        if self._token is None:
            data = self._request(
                "/v1/oauth2/token",
                auth=self._auth,
                data={"grant_type": "client_credentials"},
            )
            self._token = str(data["access_token"])
        return self._token

    def _headers(self, request_id: str | None = None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._access_token()}",
            "Content-Type": "application/json",
        }
        if request_id:
            headers["PayPal-Request-Id"] = request_id
        return headers

    def create_order(self, order: Order) -> str:
        """Create a PayPal order for the given checkout order.

        Args:
            order: The pending order to collect payment for.

        Returns:
            The PayPal order ID for the buyer to approve.
        """
        currency = get_config().currency
        purchase_unit: dict[str, object] = {
            "reference_id": order.reference,
            "custom_id": str(order.pk),
            "description": f"Order {order.reference} for {self.event.name}",
            "amount": {
                "currency_code": currency,
                "value": str(to_major_units(order.total_cents, currency)),
            },
        }
        if self.event.paypal_merchant_id:
            purchase_unit["payee"] = {"merchant_id": self.event.paypal_merchant_id}
            if order.platform_fee_cents:
                purchase_unit["payment_instruction"] = {
                    "platform_fees": [
                        {
                            "amount": {
                                "currency_code": currency,
                                "value": str(to_major_units(order.platform_fee_cents, currency)),
                            },
                        },
                    ],
                }

        data = self._request(
            "/v2/checkout/orders",
            headers=self._headers(request_id=order.reference),
            json={"intent": "CAPTURE", "purchase_units": [purchase_unit]},
        )
        logger.info("Created PayPal order %s for order %s", data.get("id"), order.reference)
        return str(data["id"])

    def capture_order(self, paypal_order_id: str) -> dict[str, object]:
        """Capture an approved PayPal order.

        Args:
            paypal_order_id: The PayPal order ID the buyer approved.

        Returns:
            The decoded capture response.
        """
        return self._request(
            f"/v2/checkout/orders/{paypal_order_id}/capture",
            headers=self._headers(request_id=f"capture-{paypal_order_id}"),
        )
