"""Inventory ledger for tiers, bundles, and seats.

This is the only module that mutates ``sold``/``reserved`` counters and seat
statuses. Every counter change is a single conditional ``UPDATE`` built from
``F()`` expressions, so the database decides atomically whether the last unit
goes to one buyer or the other. Nothing here reads a counter and writes it
back.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import NamedTuple

from django.db import models, transaction
from django.utils import timezone

from django_boxoffice.checkout.exceptions import InvalidRequest, SeatsUnavailable, SoldOut
from django_boxoffice.checkout.models import Bundle, Order, Reservation, Seat, TicketTier
from django_boxoffice.settings import get_config

logger = logging.getLogger(__name__)

TIER = "tier"
BUNDLE = "bundle"

_ITEM_MODELS: dict[str, type[models.Model]] = {TIER: TicketTier, BUNDLE: Bundle}
_CAPACITY_FIELDS = {TIER: "capacity", BUNDLE: "available_count"}


class ItemRef(NamedTuple):
    """A reference to a sellable unit: ``("tier", pk)`` or ``("bundle", pk)``."""

    kind: str
    pk: int

    @classmethod
    def for_item(cls, item: TicketTier | Bundle) -> ItemRef:
        """Build a reference from a tier or bundle instance."""
        kind = BUNDLE if isinstance(item, Bundle) else TIER
        return cls(kind, item.pk)

    @classmethod
    def for_reservation(cls, reservation: Reservation) -> ItemRef:
        """Build a reference to the item a reservation holds."""
        if reservation.bundle_id is not None:
            return cls(BUNDLE, reservation.bundle_id)
        return cls(TIER, reservation.tier_id)

    @property
    def model(self) -> type[models.Model]:
        """Return the model class backing this reference."""
        try:
            return _ITEM_MODELS[self.kind]
        except KeyError:
            msg = f"Unknown item kind '{self.kind}'."
            raise InvalidRequest(msg) from None

    def queryset(self) -> models.QuerySet:
        """Return a queryset matching exactly the referenced row."""
        return self.model.objects.filter(pk=self.pk)


def remaining(ref: ItemRef) -> int:
    """Return how many units of ``ref`` can still be reserved.

    Returns 0 for inactive or unknown items.
    """
    item = ref.queryset().filter(is_active=True).first()
    if item is None:
        return 0
    return item.remaining


def is_in_stock(ref: ItemRef) -> bool:
    """Return True when at least one unit of ``ref`` can be reserved."""
    return remaining(ref) > 0


@transaction.atomic
def reserve(ref: ItemRef, quantity: int, *, now: datetime | None = None) -> Reservation:
    """Hold ``quantity`` units of ``ref`` for the pending-order window.

    Stale reservations are expired first so an abandoned checkout never
    counts against availability.

    Args:
        ref: The tier or bundle to reserve.
        quantity: Number of units (must be positive).
        now: Override for the current time (tests, sweeps).

    Returns:
        The new ACTIVE reservation.

    Raises:
        InvalidRequest: If the quantity is not positive or the item does not
            exist or is inactive.
        SoldOut: If fewer than ``quantity`` units remain.
    """
    if quantity < 1:
        raise InvalidRequest("Quantity must be at least 1.")
    now = now or timezone.now()
    expire_stale(now=now)

    model = ref.model
    capacity_field = _CAPACITY_FIELDS[ref.kind]
    updated = (
        model.objects.filter(pk=ref.pk)
        .filter(
            is_active=True,
            **{f"{capacity_field}__gte": models.F("sold") + models.F("reserved") + quantity},
        )
        .update(reserved=models.F("reserved") + quantity)
    )
    if updated != 1:
        item = ref.queryset().filter(is_active=True).first()
        if item is None:
            msg = f"The selected {ref.kind} is not on sale."
            raise InvalidRequest(msg)
        if item.remaining <= 0:
            raise SoldOut(f"'{item.name}' is sold out.", item=item)
        raise SoldOut(f"Only {item.remaining} of '{item.name}' remaining, but {quantity} requested.", item=item)

    expires_at = now + timedelta(minutes=get_config().pending_order_expiry_minutes)
    reservation = Reservation.objects.create(
        tier_id=ref.pk if ref.kind == TIER else None,
        bundle_id=ref.pk if ref.kind == BUNDLE else None,
        quantity=quantity,
        expires_at=expires_at,
    )
    logger.info("Reserved %d x %s %s (reservation %s)", quantity, ref.kind, ref.pk, reservation.pk)
    return reservation


@transaction.atomic
def commit(reservation_id: object) -> bool:
    """Turn an ACTIVE reservation into sold inventory.

    Returns:
        True if the reservation was committed, False if it was not ACTIVE
        (already committed, released, or expired), in which case the
        counters are left untouched.
    """
    reservation = Reservation.objects.select_for_update().get(pk=reservation_id)
    if reservation.status != Reservation.Status.ACTIVE:
        return False

    reservation.status = Reservation.Status.COMMITTED
    reservation.save(update_fields=["status", "updated_at"])
    ItemRef.for_reservation(reservation).queryset().update(
        sold=models.F("sold") + reservation.quantity,
        reserved=models.F("reserved") - reservation.quantity,
    )
    logger.info("Committed reservation %s (%d units)", reservation.pk, reservation.quantity)
    return True


@transaction.atomic
def release(reservation_id: object, *, expired: bool = False) -> bool:
    """Return an ACTIVE reservation's units to the pool.

    Args:
        reservation_id: The reservation to release.
        expired: Record the release as an expiry rather than a cancellation.

    Returns:
        True if units were returned, False if the reservation was not ACTIVE.
    """
    reservation = Reservation.objects.select_for_update().get(pk=reservation_id)
    if reservation.status != Reservation.Status.ACTIVE:
        return False

    reservation.status = Reservation.Status.EXPIRED if expired else Reservation.Status.RELEASED
    reservation.save(update_fields=["status", "updated_at"])
    ItemRef.for_reservation(reservation).queryset().update(
        reserved=models.F("reserved") - reservation.quantity,
    )
    logger.info("Released reservation %s (%s)", reservation.pk, reservation.status)
    return True


def extend(reservation_id: object, expires_at: datetime) -> bool:
    """Move an ACTIVE reservation's expiry to ``expires_at``."""
    return (
        Reservation.objects.filter(pk=reservation_id, status=Reservation.Status.ACTIVE).update(
            expires_at=expires_at,
            updated_at=timezone.now(),
        )
        == 1
    )


def expire_stale(*, now: datetime | None = None) -> int:
    """Expire every ACTIVE reservation whose hold has lapsed.

    Returns:
        The number of reservations expired.
    """
    now = now or timezone.now()
    stale_ids = list(
        Reservation.objects.filter(
            status=Reservation.Status.ACTIVE,
            expires_at__lte=now,
        ).values_list("pk", flat=True)
    )
    count = sum(1 for pk in stale_ids if release(pk, expired=True))
    if count:
        logger.info("Expired %d stale reservations", count)
    return count


# -- Seats --------------------------------------------------------------------


def _claimable_seats(session_key: str, now: datetime) -> models.Q:
    """Seats that are free, hold-expired, or held by ``session_key`` itself."""
    claimable = models.Q(status=Seat.Status.AVAILABLE) | models.Q(
        status=Seat.Status.HELD,
        hold_expires_at__lte=now,
    )
    if session_key:
        claimable |= models.Q(status=Seat.Status.HELD, session_key=session_key)
    return claimable


@transaction.atomic
def hold_seats(event_id: int, seat_ids: list[int], session_key: str, *, now: datetime | None = None) -> datetime:
    """Place (or refresh) soft holds on seats for a buyer session.

    Seat holds use their own, shorter TTL because contended seats churn
    faster than tier inventory.

    Returns:
        When the holds expire.

    Raises:
        InvalidRequest: If no session key is given.
        SeatsUnavailable: If any seat is not claimable; no seat is held then.
    """
    if not session_key:
        raise InvalidRequest("A buyer session is required to hold seats.")
    now = now or timezone.now()
    expires_at = now + timedelta(minutes=get_config().seat_hold_minutes)
    ids = set(seat_ids)
    updated = (
        Seat.objects.filter(pk__in=ids, section__event_id=event_id)
        .filter(_claimable_seats(session_key, now))
        .update(
            status=Seat.Status.HELD,
            session_key=session_key,
            hold_expires_at=expires_at,
            updated_at=now,
        )
    )
    if updated != len(ids):
        _raise_first_unclaimable(event_id, ids, session_key, now)
    return expires_at


def release_holds(session_key: str) -> int:
    """Drop every soft hold owned by ``session_key``."""
    if not session_key:
        return 0
    return Seat.objects.filter(status=Seat.Status.HELD, session_key=session_key).update(
        status=Seat.Status.AVAILABLE,
        session_key="",
        hold_expires_at=None,
        updated_at=timezone.now(),
    )


def clear_lapsed_holds(*, now: datetime | None = None) -> int:
    """Return seats whose soft hold has lapsed to AVAILABLE."""
    now = now or timezone.now()
    return Seat.objects.filter(status=Seat.Status.HELD, hold_expires_at__lte=now).update(
        status=Seat.Status.AVAILABLE,
        session_key="",
        hold_expires_at=None,
        updated_at=now,
    )


def reserve_seats(order: Order, seat_ids: list[int], *, now: datetime | None = None) -> int:
    """Attach seats to a pending order, re-checking each one is still claimable.

    Must run inside the caller's transaction so a partial claim rolls back
    with the order.

    Raises:
        SeatsUnavailable: If any seat was taken since it was picked.
    """
    now = now or timezone.now()
    ids = set(seat_ids)
    updated = (
        Seat.objects.filter(pk__in=ids, section__event_id=order.event_id)
        .filter(_claimable_seats(order.session_key, now))
        .update(
            status=Seat.Status.RESERVED,
            order=order,
            hold_expires_at=None,
            updated_at=now,
        )
    )
    if updated != len(ids):
        _raise_first_unclaimable(order.event_id, ids, order.session_key, now, exclude_order=order)
    return updated


def commit_seats(order: Order) -> int:
    """Mark an order's reserved seats as sold."""
    return Seat.objects.filter(order=order, status=Seat.Status.RESERVED).update(
        status=Seat.Status.SOLD,
        updated_at=timezone.now(),
    )


def release_seats(order: Order) -> int:
    """Return an order's reserved seats to the chart."""
    return Seat.objects.filter(order=order, status=Seat.Status.RESERVED).update(
        status=Seat.Status.AVAILABLE,
        order=None,
        session_key="",
        hold_expires_at=None,
        updated_at=timezone.now(),
    )


def _raise_first_unclaimable(
    event_id: int,
    ids: set[int],
    session_key: str,
    now: datetime,
    *,
    exclude_order: Order | None = None,
) -> None:
    """Raise ``SeatsUnavailable`` naming the first seat that could not be claimed."""
    claimable = Seat.objects.filter(pk__in=ids, section__event_id=event_id).filter(_claimable_seats(session_key, now))
    if exclude_order is not None:
        claimable = Seat.objects.filter(pk__in=ids, order=exclude_order) | claimable
    ok = set(claimable.values_list("pk", flat=True))
    seat_id = min(ids - ok) if ids - ok else None
    raise SeatsUnavailable(f"Seat {seat_id} is no longer available.", seat_id=seat_id)
