"""JSON views for the checkout flow.

Every endpoint is scoped to an event by the ``event_slug`` URL kwarg and
speaks JSON in both directions. Business-rule failures come back as
``{"error": CODE, "message": ...}`` with a 4xx status, and a sold-out
response carries ``"waitlist": true`` so the client can offer the waitlist.
"""

import json
from typing import TYPE_CHECKING

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from django_boxoffice.checkout.exceptions import (
    CheckoutError,
    InvalidDiscount,
    InvalidRequest,
    SeatsUnavailable,
    SoldOut,
)
from django_boxoffice.checkout.models import Bundle, Order, TicketTier
from django_boxoffice.checkout.services import seating
from django_boxoffice.checkout.services.orders import (
    BuyerInfo,
    OrderService,
    Selection,
    preview_price,
    resolve_item,
    validate_discount,
)
from django_boxoffice.checkout.services.payment import PaymentService
from django_boxoffice.checkout.services.waitlist import WaitlistService
from django_boxoffice.events.models import Event

if TYPE_CHECKING:
    from uuid import UUID


def error_response(exc: CheckoutError) -> JsonResponse:
    """Translate a checkout error into its JSON response."""
    body: dict[str, object] = {"error": exc.code, "message": exc.messages[0]}
    if isinstance(exc, SoldOut):
        body["waitlist"] = True
    elif isinstance(exc, InvalidDiscount):
        body["reason"] = exc.reason
    elif isinstance(exc, SeatsUnavailable):
        body["seat_id"] = exc.seat_id
    return JsonResponse(body, status=exc.http_status)


def order_payload(order: Order) -> dict[str, object]:
    """Serialize an order for the buyer."""
    payload: dict[str, object] = {
        "id": str(order.pk),
        "reference": order.reference,
        "status": order.status,
        "selection_type": order.selection_type,
        "quantity": order.quantity,
        "subtotal_cents": order.subtotal_cents,
        "discount_cents": order.discount_cents,
        "platform_fee_cents": order.platform_fee_cents,
        "processing_fee_cents": order.processing_fee_cents,
        "total_cents": order.total_cents,
        "payment_method": order.payment_method,
        "expires_at": order.expires_at.isoformat() if order.expires_at else None,
        "seats": list(order.seats.order_by("pk").values_list("pk", flat=True)),
    }
    if order.status in (Order.Status.COMPLETED, Order.Status.CASH_PENDING):
        payload["tickets"] = [{"code": ticket.code, "status": ticket.status} for ticket in order.tickets.all()]
    return payload


def _int(data: dict[str, object], key: str, *, default: int | None = None) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or value is None:
        msg = f"'{key}' must be an integer."
        raise InvalidRequest(msg)
    try:
        return int(value)
    except (TypeError, ValueError):
        msg = f"'{key}' must be an integer."
        raise InvalidRequest(msg) from None


def _int_list(data: dict[str, object], key: str) -> tuple[int, ...]:
    values = data.get(key) or []
    if not isinstance(values, list):
        msg = f"'{key}' must be a list of integers."
        raise InvalidRequest(msg)
    return tuple(_int({key: value}, key) for value in values)


def _selection(data: dict[str, object]) -> Selection:
    return Selection(
        selection_type=str(data.get("selection_type") or Order.SelectionType.TIER),
        item_id=_int(data, "item_id"),
        quantity=_int(data, "quantity", default=1),
        seat_ids=_int_list(data, "seat_ids"),
    )


def _session_key(request: HttpRequest) -> str:
    """Return the buyer's session key, creating a session if needed.

    A new session is marked modified so the middleware sends its cookie.
    """
    if not request.session.session_key:
        request.session.save()
        request.session.modified = True
    return request.session.session_key or ""


class EventMixin:
    """Mixin that resolves the event from the ``event_slug`` URL kwarg.

    Stores the event on ``self.event``. Returns a 404 if no active event
    matches the slug.
    """

    event: Event
    kwargs: dict[str, str]

    def get_event(self) -> Event:
        """Look up the on-sale event by slug from the URL.

        Raises:
            Http404: If no active event matches the slug.
        """
        return get_object_or_404(Event, slug=self.kwargs["event_slug"], is_active=True)

    def get_order(self) -> Order:
        """Look up the order named by the ``order_id`` URL kwarg within the event."""
        order_id: UUID = self.kwargs["order_id"]
        return get_object_or_404(Order.objects.select_related("event"), pk=order_id, event=self.event)


@method_decorator(csrf_exempt, name="dispatch")
class CheckoutAPIView(EventMixin, View):
    """Base view for JSON checkout endpoints.

    Parses the JSON body into ``self.data`` and turns any
    :class:`CheckoutError` raised by a handler into its JSON response.
    """

    http_method_names = ["post"]
    data: dict[str, object]

    def dispatch(self, request: HttpRequest, *args: str, **kwargs: str) -> HttpResponse:
        """Resolve the event, parse the body, and map checkout errors."""
        self.event = self.get_event()
        try:
            self.data = self.parse_body(request)
            return super().dispatch(request, *args, **kwargs)
        except CheckoutError as exc:
            return error_response(exc)

    @staticmethod
    def parse_body(request: HttpRequest) -> dict[str, object]:
        """Decode a JSON object body; GET requests and empty bodies give ``{}``."""
        if request.method != "POST" or not request.body:
            return {}
        try:
            data = json.loads(request.body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise InvalidRequest("Request body must be valid JSON.") from None
        if not isinstance(data, dict):
            raise InvalidRequest("Request body must be a JSON object.")
        return data


class PriceView(CheckoutAPIView):
    """Preview the server-side price of a selection."""

    def post(self, request: HttpRequest, **kwargs: str) -> JsonResponse:  # noqa: ARG002
        """Return the price breakdown, plus the discount outcome when a code is given."""
        selection = _selection(self.data)
        code = str(self.data.get("discount_code") or "")
        buyer_email = str(self.data.get("buyer_email") or "")
        pricing = preview_price(self.event, selection, code, buyer_email=buyer_email)
        body: dict[str, object] = pricing.as_dict()
        if code.strip():
            result = validate_discount(
                self.event,
                code,
                [selection.ref],
                pricing.subtotal_cents,
                buyer_email=buyer_email,
            )
            body["discount"] = {**result.as_dict(), "message": result.message}
        return JsonResponse(body)


class DiscountView(CheckoutAPIView):
    """Validate a discount code against a selection."""

    def post(self, request: HttpRequest, **kwargs: str) -> JsonResponse:  # noqa: ARG002
        """Return ``{valid, discount_cents, reason, message}``."""
        selection = _selection(self.data)
        item = resolve_item(self.event, selection)
        result = validate_discount(
            self.event,
            str(self.data.get("code") or ""),
            [selection.ref],
            item.current_price_cents * max(selection.quantity, 0),
            buyer_email=str(self.data.get("buyer_email") or ""),
        )
        return JsonResponse({**result.as_dict(), "message": result.message})


class SeatHoldView(CheckoutAPIView):
    """Soft-hold seats for the buyer's session while they finish picking."""

    def post(self, request: HttpRequest, **kwargs: str) -> JsonResponse:  # noqa: ARG002
        """Hold the posted ``seat_ids``, or release every hold when the list is empty."""
        seat_ids = _int_list(self.data, "seat_ids")
        session_key = _session_key(request)
        if not seat_ids:
            released = seating.release_holds(session_key)
            return JsonResponse({"held": [], "released": released, "expires_at": None})
        expires_at = seating.hold_seats(self.event.pk, seat_ids, session_key)
        return JsonResponse({"held": sorted(set(seat_ids)), "expires_at": expires_at.isoformat()})


class OrderCreateView(CheckoutAPIView):
    """Create a PENDING order with its inventory reserved."""

    def post(self, request: HttpRequest, **kwargs: str) -> JsonResponse:  # noqa: ARG002
        """Create (or return the existing) order for this checkout attempt.

        The idempotency key is read from the ``Idempotency-Key`` header or the
        ``idempotency_key`` body field.

        Returns:
            201 with the order for a new order, 200 for a repeated request.
        """
        buyer = self.data.get("buyer") or {}
        if not isinstance(buyer, dict):
            raise InvalidRequest("'buyer' must be an object with 'email' and 'name'.")
        client_total = self.data.get("client_total_cents")
        order, created = OrderService.create_order(
            self.event,
            _selection(self.data),
            BuyerInfo(email=str(buyer.get("email") or ""), name=str(buyer.get("name") or "")),
            session_key=_session_key(request),
            idempotency_key=str(
                request.headers.get("Idempotency-Key") or self.data.get("idempotency_key") or ""
            )[:100],
            discount_code=str(self.data.get("discount_code") or ""),
            client_total_cents=None if client_total is None else _int(self.data, "client_total_cents"),
            order_id=self.data.get("order_id"),
        )
        return JsonResponse(order_payload(order), status=201 if created else 200)


class OrderDetailView(CheckoutAPIView):
    """Report an order's current status."""

    http_method_names = ["get"]

    def get(self, request: HttpRequest, **kwargs: str) -> JsonResponse:  # noqa: ARG002
        """Return the order, expiring it first if its hold has lapsed."""
        order = self.get_order()
        if order.status in (Order.Status.PENDING, Order.Status.CASH_PENDING):
            OrderService.expire_orders()
            order.refresh_from_db()
        return JsonResponse(order_payload(order))


class OrderCompleteView(CheckoutAPIView):
    """Complete an order after the buyer paid on their chosen rail."""

    def post(self, request: HttpRequest, **kwargs: str) -> JsonResponse:  # noqa: ARG002
        """Verify the payment with its provider and finalize the order.

        Body: ``payment_method`` (``stripe``, ``paypal``, ``cash`` or
        ``free``) and, for Stripe and PayPal, ``payment_reference`` (the
        PaymentIntent ID or the approved PayPal order ID).
        """
        order = PaymentService.complete(
            self.get_order(),
            str(self.data.get("payment_method") or ""),
            str(self.data.get("payment_reference") or ""),
        )
        return JsonResponse(order_payload(order))


class StripeIntentView(CheckoutAPIView):
    """Start a card payment for an order."""

    def post(self, request: HttpRequest, **kwargs: str) -> JsonResponse:  # noqa: ARG002
        """Return the PaymentIntent client secret and the event's publishable key."""
        client_secret = PaymentService.start_stripe_payment(self.get_order())
        return JsonResponse(
            {
                "client_secret": client_secret,
                "publishable_key": str(self.event.stripe_publishable_key or ""),
            }
        )


class PayPalOrderView(CheckoutAPIView):
    """Start a PayPal payment for an order."""

    def post(self, request: HttpRequest, **kwargs: str) -> JsonResponse:  # noqa: ARG002
        """Return the PayPal order ID for the buyer to approve."""
        return JsonResponse({"paypal_order_id": PaymentService.start_paypal_payment(self.get_order())})


class WaitlistView(CheckoutAPIView):
    """Join the waitlist for a sold-out item."""

    def post(self, request: HttpRequest, **kwargs: str) -> JsonResponse:  # noqa: ARG002
        """Create or update the buyer's waitlist entry."""
        tier = bundle = None
        if self.data.get("item_id") is not None:
            selection = _selection(self.data)
            model = Bundle if selection.selection_type == Order.SelectionType.BUNDLE else TicketTier
            item = model.objects.filter(pk=selection.item_id, event=self.event).first()
            if item is None:
                raise InvalidRequest("The selected item does not belong to this event.")
            tier, bundle = (None, item) if model is Bundle else (item, None)

        entry = WaitlistService.join(
            self.event,
            email=str(self.data.get("email") or ""),
            name=str(self.data.get("name") or ""),
            quantity=_int(self.data, "quantity", default=1),
            tier=tier,
            bundle=bundle,
        )
        return JsonResponse({"id": entry.pk, "email": entry.email, "quantity": entry.quantity}, status=201)
