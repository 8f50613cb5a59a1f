"""Order orchestrator.

Drives an order through its lifecycle::

    PENDING --> COMPLETED
            --> CASH_PENDING --> COMPLETED | EXPIRED | CANCELLED
            --> CANCELLED
            --> EXPIRED

Each transition runs in its own transaction with the order row locked, and
each has a single kind of side effect: creation only reserves, completion
only commits and issues tickets, and cancellation or expiry only releases.
Prices, discounts, and seat availability are always re-derived on the server
from live data; whatever the client shows the buyer is advisory.
"""

from __future__ import annotations

import logging
import secrets
import string
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction
from django.utils import timezone

from django_boxoffice.checkout.exceptions import (
    InvalidDiscount,
    InvalidRequest,
    OrderExpired,
    OrderNotPending,
    SeatsRequired,
    SeatsUnavailable,
)
from django_boxoffice.checkout.models import Bundle, Order, PaymentMethod, Reservation, TicketTier
from django_boxoffice.checkout.services import inventory, seating
from django_boxoffice.checkout.services.discounts import (
    LIMIT_REACHED,
    REASON_MESSAGES,
    DiscountResult,
    DiscountValidator,
    claim_use,
    return_use,
)
from django_boxoffice.checkout.services.inventory import TIER, ItemRef
from django_boxoffice.checkout.services.pricing import PricingResult, price_for_event
from django_boxoffice.checkout.services.tickets import activate_tickets, cancel_tickets, issue_tickets
from django_boxoffice.checkout.signals import order_cash_pending, order_completed, order_expired
from django_boxoffice.events.models import Event
from django_boxoffice.settings import get_config

logger = logging.getLogger(__name__)

_REFERENCE_ATTEMPTS = 5
_OPEN_STATUSES = (Order.Status.PENDING, Order.Status.CASH_PENDING)


def _generate_reference() -> str:
    """Generate a unique order reference using the configured prefix.

    The prefix is set via ``DJANGO_BOXOFFICE["order_reference_prefix"]``
    (default ``"ORD"``), producing references like ``ORD-A1B2C3D4``.
    """
    config = get_config()
    chars = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(chars) for _ in range(8))
    return f"{config.order_reference_prefix}-{suffix}"


@dataclass(frozen=True, slots=True)
class Selection:
    """What the buyer asked for: one tier or bundle, a quantity, and any seats."""

    selection_type: str
    item_id: int
    quantity: int
    seat_ids: tuple[int, ...] = ()

    @property
    def ref(self) -> ItemRef:
        """Return the inventory reference for the selected item."""
        return ItemRef(self.selection_type, self.item_id)


@dataclass(frozen=True, slots=True)
class BuyerInfo:
    """Contact details captured at checkout."""

    email: str
    name: str


def resolve_item(event: Event, selection: Selection) -> TicketTier | Bundle:
    """Return the active tier or bundle ``selection`` points at.

    Raises:
        InvalidRequest: If the selection type is unknown or the item is not on
            sale for ``event``.
    """
    if selection.selection_type not in Order.SelectionType.values:
        msg = f"Unknown selection type '{selection.selection_type}'."
        raise InvalidRequest(msg)
    item = selection.ref.model.objects.filter(pk=selection.item_id, event=event, is_active=True).first()
    if item is None:
        raise InvalidRequest("The selected item is not on sale for this event.")
    return item


def _check_quantity(quantity: object) -> None:
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise InvalidRequest("Quantity must be a whole number of at least 1.")
    limit = get_config().max_quantity_per_order
    if quantity > limit:
        msg = f"At most {limit} can be bought in one order."
        raise InvalidRequest(msg)


def _validated_buyer(buyer: BuyerInfo) -> BuyerInfo:
    email = (buyer.email or "").strip().lower()
    try:
        validate_email(email)
    except ValidationError:
        raise InvalidRequest("A valid buyer email address is required.") from None
    name = (buyer.name or "").strip()
    if not name:
        raise InvalidRequest("Buyer name is required.")
    return BuyerInfo(email=email, name=name)


def validate_discount(
    event: Event,
    code: str,
    cart_items: Sequence[ItemRef],
    subtotal_cents: int,
    *,
    buyer_email: str = "",
) -> DiscountResult:
    """Validate a discount code against the live cart without claiming a use."""
    return DiscountValidator(event).validate(
        code,
        buyer_email=buyer_email,
        cart_items=cart_items,
        subtotal_cents=subtotal_cents,
    )


def preview_price(
    event: Event,
    selection: Selection,
    discount_code: str = "",
    *,
    buyer_email: str = "",
) -> PricingResult:
    """Price a selection exactly as :meth:`OrderService.create_order` would.

    Nothing is reserved or claimed. A code that does not validate simply
    contributes no discount; call :func:`validate_discount` to find out why.

    Raises:
        InvalidRequest: If the quantity or item is invalid.
    """
    _check_quantity(selection.quantity)
    item = resolve_item(event, selection)
    unit_price = item.current_price_cents
    discount_cents = 0
    if discount_code.strip():
        result = validate_discount(
            event,
            discount_code,
            [selection.ref],
            unit_price * selection.quantity,
            buyer_email=buyer_email,
        )
        discount_cents = result.discount_cents
    return price_for_event(event, unit_price, selection.quantity, discount_cents)


def _find_existing(event: Event, session_key: str, idempotency_key: str, order_id: object = None) -> Order | None:
    """Return an order this session already created for the same request, if any.

    Requests without a session share no namespace and are never deduplicated.
    """
    if not session_key:
        return None
    if order_id:
        try:
            pk = uuid.UUID(str(order_id))
        except ValueError:
            pk = None
        if pk is not None:
            order = Order.objects.filter(pk=pk, event=event, session_key=session_key).first()
            if order is not None:
                return order
    if idempotency_key:
        return Order.objects.filter(event=event, session_key=session_key, idempotency_key=idempotency_key).first()
    return None


def _checked_seats(event: Event, ref: ItemRef, selection: Selection, session_key: str, now: datetime) -> list[int]:
    """Run the seat gate and return the seat ids to reserve."""
    if ref.kind != TIER:
        if selection.seat_ids:
            raise InvalidRequest("Seats can only be chosen for ticket tiers.")
        return []

    snapshot = seating.SeatingSnapshot.for_event(event.pk, now=now)
    if not seating.is_required(ref.pk, snapshot):
        if selection.seat_ids:
            raise InvalidRequest("This ticket tier does not use reserved seating.")
        return []

    check = seating.validate(ref.pk, selection.quantity, selection.seat_ids, snapshot, session_key=session_key)
    if check.reason == seating.COUNT_MISMATCH:
        msg = f"Choose exactly one seat per ticket ({selection.quantity} in total)."
        raise SeatsRequired(msg)
    if not check.ok:
        msg = f"Seat {check.seat_id} is no longer available."
        raise SeatsUnavailable(msg, seat_id=check.seat_id)
    return sorted(set(selection.seat_ids))


def _create_with_reference(**fields: object) -> Order:
    """Insert an order, retrying on the rare reference collision."""
    attempts = 0
    while True:
        attempts += 1
        try:
            with transaction.atomic():
                return Order.objects.create(reference=_generate_reference(), **fields)
        except IntegrityError:
            duplicate_request = (
                fields["idempotency_key"]
                and fields["session_key"]
                and Order.objects.filter(
                    event=fields["event"],
                    session_key=fields["session_key"],
                    idempotency_key=fields["idempotency_key"],
                ).exists()
            )
            if duplicate_request or attempts >= _REFERENCE_ATTEMPTS:
                raise


def _lock_order(order_id: object) -> Order:
    try:
        return Order.objects.select_for_update().select_related("event").get(pk=order_id)
    except (Order.DoesNotExist, ValidationError):
        msg = f"No order {order_id} is awaiting payment."
        raise OrderNotPending(msg) from None


def _reject_closed(order: Order, msg: str) -> None:
    """Raise the error for a transition attempted on an order not in the state it needs."""
    if order.status == Order.Status.EXPIRED:
        msg = f"Order {order.reference} expired before payment completed."
        raise OrderExpired(msg)
    raise OrderNotPending(msg)


def _reservation_lapsed(order: Order, now: datetime) -> bool:
    if order.expires_at is not None and order.expires_at <= now:
        return True
    reservation = order.reservation
    return reservation is None or reservation.status != Reservation.Status.ACTIVE


def _close(order: Order, status: str, reason: str) -> None:
    """Release everything an open order holds and move it to ``status``."""
    if order.reservation_id is not None:
        inventory.release(order.reservation_id, expired=status == Order.Status.EXPIRED)
    inventory.release_seats(order)
    if order.discount_code_id is not None:
        return_use(order.discount_code_id)
    cancel_tickets(order)
    order.status = status
    order.failure_reason = reason[:300]
    order.save(update_fields=["status", "failure_reason", "updated_at"])


def _finalize(order: Order, now: datetime) -> None:
    """Commit an order's inventory and seats and mark it COMPLETED."""
    if order.reservation_id is not None:
        inventory.commit(order.reservation_id)
    inventory.commit_seats(order)
    order.status = Order.Status.COMPLETED
    order.completed_at = now
    order.expires_at = None
    order.save(
        update_fields=["status", "completed_at", "expires_at", "payment_method", "payment_reference", "updated_at"],
    )


class OrderService:
    """Stateless service for the order lifecycle."""

    @staticmethod
    def create_order(
        event: Event,
        selection: Selection,
        buyer: BuyerInfo,
        *,
        session_key: str = "",
        idempotency_key: str = "",
        discount_code: str = "",
        client_total_cents: int | None = None,
        order_id: object = None,
    ) -> tuple[Order, bool]:
        """Validate, price, and reserve a selection as a PENDING order.

        Repeating a request with the same ``(session_key, idempotency_key)``,
        or resending the ``order_id`` already handed to this session, returns
        the original order instead of reserving inventory twice.

        Args:
            event: The event being bought for.
            selection: The tier or bundle, quantity, and seats.
            buyer: Buyer contact details.
            session_key: The buyer's session; scopes idempotency and seat holds.
            idempotency_key: Client-generated key for this checkout attempt.
            discount_code: Optional discount code, validated against live data.
            client_total_cents: The total the client displayed. Only logged
                when it disagrees with the server's figure.
            order_id: An order id the client was already given.

        Returns:
            A ``(order, created)`` tuple.

        Raises:
            InvalidRequest: Bad quantity, item, or buyer details.
            InvalidDiscount: The discount code did not validate.
            SeatsRequired: A seated tier without exactly one seat per ticket.
            SeatsUnavailable: A chosen seat was taken.
            SoldOut: Not enough inventory remains.
        """
        existing = _find_existing(event, session_key, idempotency_key, order_id)
        if existing is not None:
            logger.info("Returning existing order %s for a repeated checkout request", existing.reference)
            return existing, False

        if not event.is_active:
            raise InvalidRequest("This event is not on sale.")
        buyer = _validated_buyer(buyer)
        _check_quantity(selection.quantity)

        now = timezone.now()
        OrderService.expire_orders(now=now)
        try:
            order = OrderService._place_order(
                event,
                selection,
                buyer,
                session_key=session_key,
                idempotency_key=idempotency_key,
                discount_code=discount_code.strip(),
                now=now,
            )
        except IntegrityError:
            existing = _find_existing(event, session_key, idempotency_key)
            if existing is None:
                raise
            logger.info("Concurrent checkout request resolved to existing order %s", existing.reference)
            return existing, False

        if client_total_cents is not None and client_total_cents != order.total_cents:
            logger.warning(
                "Client total %s differs from server total %s for order %s",
                client_total_cents,
                order.total_cents,
                order.reference,
            )
        logger.info(
            "Created order %s: %d x %s %s, total %d cents",
            order.reference,
            order.quantity,
            order.selection_type,
            selection.item_id,
            order.total_cents,
        )
        return order, True

    @staticmethod
    @transaction.atomic
    def _place_order(
        event: Event,
        selection: Selection,
        buyer: BuyerInfo,
        *,
        session_key: str,
        idempotency_key: str,
        discount_code: str,
        now: datetime,
    ) -> Order:
        item = resolve_item(event, selection)
        ref = ItemRef.for_item(item)
        unit_price = item.current_price_cents
        quantity = selection.quantity

        discount_id = None
        discount_cents = 0
        if discount_code:
            result = validate_discount(
                event,
                discount_code,
                [ref],
                unit_price * quantity,
                buyer_email=buyer.email,
            )
            if not result.valid:
                raise InvalidDiscount(result.message, reason=result.reason)
            discount_id = result.code_id
            discount_cents = result.discount_cents
        pricing = price_for_event(event, unit_price, quantity, discount_cents)

        seat_ids = _checked_seats(event, ref, selection, session_key, now)
        reservation = inventory.reserve(ref, quantity, now=now)
        if discount_id is not None and not claim_use(discount_id):
            raise InvalidDiscount(REASON_MESSAGES[LIMIT_REACHED], reason=LIMIT_REACHED)

        order = _create_with_reference(
            event=event,
            buyer_email=buyer.email,
            buyer_name=buyer.name,
            session_key=session_key,
            idempotency_key=idempotency_key,
            selection_type=ref.kind,
            tier=item if ref.kind == TIER else None,
            bundle=None if ref.kind == TIER else item,
            quantity=quantity,
            subtotal_cents=pricing.subtotal_cents,
            discount_cents=pricing.discount_cents,
            platform_fee_cents=pricing.platform_fee_cents,
            processing_fee_cents=pricing.processing_fee_cents,
            total_cents=pricing.total_cents,
            discount_code_id=discount_id,
            payment_model=event.payment_model,
            status=Order.Status.PENDING,
            reservation=reservation,
            expires_at=reservation.expires_at,
        )
        if seat_ids:
            inventory.reserve_seats(order, seat_ids, now=now)
        return order

    @staticmethod
    def ensure_payable(order_id: object, *, now: datetime | None = None) -> Order:
        """Check that an order can still take a payment before a provider moves money.

        A PENDING order whose hold has lapsed is expired here, so a PayPal
        capture is never made for an order that could not complete.

        Returns:
            The order, still PENDING.

        Raises:
            OrderNotPending: If the order is unknown or not PENDING.
            OrderExpired: If the order expired or its reservation lapsed.
        """
        now = now or timezone.now()
        with transaction.atomic():
            order = _lock_order(order_id)
            if order.status != Order.Status.PENDING:
                _reject_closed(order, f"Order {order.reference} is not pending.")
            expired = _reservation_lapsed(order, now)
            if expired:
                _close(order, Order.Status.EXPIRED, "Reservation expired before payment started.")

        if expired:
            logger.warning("Order %s expired before its payment could be taken", order.reference)
            order_expired.send(sender=Order, order=order)
            msg = f"Order {order.reference} expired before payment completed."
            raise OrderExpired(msg)
        return order

    @staticmethod
    def complete_order(
        order_id: object,
        payment_reference: str,
        payment_method: str,
        *,
        now: datetime | None = None,
    ) -> Order:
        """Finalize a PENDING order once its payment has been verified.

        Card and wallet payments, and zero-total orders, commit the
        reservation and issue active tickets. Cash moves the order to
        ``CASH_PENDING`` with inactive tickets and extends the hold by
        ``cash_hold_minutes``. Zero-total orders always complete as ``FREE``
        with the configured sentinel reference.

        Args:
            order_id: The order to complete.
            payment_reference: The provider's reference for the verified
                payment. Ignored for free orders and optional for cash.
            payment_method: One of :class:`PaymentMethod`.
            now: Override for the current time.

        Returns:
            The updated order.

        Raises:
            OrderNotPending: If the order is unknown or not PENDING.
            OrderExpired: If the reservation lapsed before completion. The
                order is moved to EXPIRED and its inventory released.
            InvalidRequest: If the method is unknown or not accepted, FREE is
                used on a non-zero total, or a provider reference is missing.
        """
        now = now or timezone.now()
        config = get_config()
        with transaction.atomic():
            order = _lock_order(order_id)
            if order.status != Order.Status.PENDING:
                logger.warning(
                    "Refusing %s completion of order %s in status %s (reference %s)",
                    payment_method,
                    order.reference,
                    order.status,
                    payment_reference,
                )
                _reject_closed(order, f"Order {order.reference} is not pending.")

            expired = _reservation_lapsed(order, now)
            if expired:
                _close(order, Order.Status.EXPIRED, "Reservation expired before payment completed.")
            else:
                method, reference = _payment_for(order, payment_method, payment_reference)
                order.payment_method = method
                order.payment_reference = reference
                if method == PaymentMethod.CASH:
                    order.status = Order.Status.CASH_PENDING
                    order.expires_at = now + timedelta(minutes=config.cash_hold_minutes)
                    inventory.extend(order.reservation_id, order.expires_at)
                    order.save(
                        update_fields=["status", "expires_at", "payment_method", "payment_reference", "updated_at"]
                    )
                    issue_tickets(order, active=False)
                else:
                    _finalize(order, now)
                    issue_tickets(order)

        if expired:
            logger.warning(
                "Order %s expired before %s payment %s completed",
                order.reference,
                payment_method,
                payment_reference,
            )
            order_expired.send(sender=Order, order=order)
            msg = f"Order {order.reference} expired before payment completed."
            raise OrderExpired(msg)

        if order.status == Order.Status.CASH_PENDING:
            logger.info("Order %s awaiting cash payment until %s", order.reference, order.expires_at)
            order_cash_pending.send(sender=Order, order=order)
        else:
            logger.info(
                "Completed order %s via %s (%s)",
                order.reference,
                order.payment_method,
                order.payment_reference,
            )
            order_completed.send(sender=Order, order=order)
        return order

    @staticmethod
    def confirm_cash_payment(order_id: object, *, now: datetime | None = None) -> Order:
        """Record that staff collected cash for a CASH_PENDING order.

        Raises:
            OrderNotPending: If the order is not awaiting cash.
            OrderExpired: If the cash hold already lapsed.
        """
        now = now or timezone.now()
        with transaction.atomic():
            order = _lock_order(order_id)
            if order.status != Order.Status.CASH_PENDING:
                logger.warning("Refusing cash confirmation of order %s in status %s", order.reference, order.status)
                _reject_closed(order, f"Order {order.reference} is not awaiting cash payment.")

            expired = _reservation_lapsed(order, now)
            if expired:
                _close(order, Order.Status.EXPIRED, "Cash hold expired before payment was collected.")
            else:
                _finalize(order, now)
                activate_tickets(order)

        if expired:
            logger.warning("Cash hold for order %s lapsed before confirmation", order.reference)
            order_expired.send(sender=Order, order=order)
            msg = f"Order {order.reference} expired before the cash payment was recorded."
            raise OrderExpired(msg)

        logger.info("Confirmed cash payment for order %s", order.reference)
        order_completed.send(sender=Order, order=order)
        return order

    @staticmethod
    @transaction.atomic
    def cancel_order(order_id: object, *, reason: str = "") -> Order:
        """Cancel an open order and release its inventory, seats, and discount use.

        Raises:
            OrderNotPending: If the order is already terminal.
        """
        order = _lock_order(order_id)
        if order.status not in _OPEN_STATUSES:
            logger.warning("Refusing to cancel order %s in status %s", order.reference, order.status)
            msg = f"Order {order.reference} can no longer be cancelled."
            raise OrderNotPending(msg)

        _close(order, Order.Status.CANCELLED, reason or "Cancelled.")
        logger.info("Cancelled order %s", order.reference)
        return order

    @staticmethod
    def expire_orders(*, now: datetime | None = None) -> int:
        """Expire every open order whose hold has lapsed.

        Returns:
            The number of orders expired.
        """
        now = now or timezone.now()
        stale_ids = list(
            Order.objects.filter(status__in=_OPEN_STATUSES, expires_at__lte=now).values_list("pk", flat=True)
        )
        expired: list[Order] = []
        for pk in stale_ids:
            with transaction.atomic():
                order = Order.objects.select_for_update().get(pk=pk)
                if order.status not in _OPEN_STATUSES or order.expires_at is None or order.expires_at > now:
                    continue
                _close(order, Order.Status.EXPIRED, "Payment was not completed in time.")
            expired.append(order)

        for order in expired:
            order_expired.send(sender=Order, order=order)
        if expired:
            logger.info("Expired %d unpaid orders", len(expired))
        return len(expired)


def _payment_for(order: Order, method: str, reference: str) -> tuple[str, str]:
    """Return the ``(method, reference)`` pair to record for a completion."""
    config = get_config()
    if method not in PaymentMethod.values:
        msg = f"Unknown payment method '{method}'."
        raise InvalidRequest(msg)
    if order.total_cents == 0:
        return PaymentMethod.FREE, config.free_payment_reference
    if method == PaymentMethod.FREE:
        raise InvalidRequest("Only orders with a zero total can be completed without payment.")
    if not order.event.accepts(method):
        msg = f"This event does not accept {PaymentMethod(method).label} payments."
        raise InvalidRequest(msg)
    if method == PaymentMethod.CASH:
        return PaymentMethod.CASH, reference or config.cash_payment_reference
    if not reference:
        raise InvalidRequest("A payment reference is required.")
    return method, reference
