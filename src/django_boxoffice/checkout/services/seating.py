"""Seat requirement gate.

Decides whether a tier must be bought with seats and checks a candidate seat
set against a live snapshot of the seating chart. The snapshot is taken at
order submission, not when the buyer first saw the chart, so seats grabbed by
someone else in between are caught here.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from django.utils import timezone

from django_boxoffice.checkout.models import Seat, SeatingSection
from django_boxoffice.checkout.services import inventory

COUNT_MISMATCH = "count_mismatch"
SEAT_UNAVAILABLE = "seat_unavailable"


@dataclass(frozen=True, slots=True)
class SeatState:
    """One seat as seen in a snapshot."""

    seat_id: int
    section_id: int
    status: str
    session_key: str = ""
    hold_expires_at: datetime | None = None

    def is_available_to(self, session_key: str = "") -> bool:
        """Return whether ``session_key`` may take this seat.

        A seat held by the same session is still available to that session.
        """
        if self.status == Seat.Status.AVAILABLE:
            return True
        if self.status == Seat.Status.HELD:
            return bool(session_key) and self.session_key == session_key
        return False


@dataclass(frozen=True, slots=True)
class SeatingSnapshot:
    """Seat statuses for an event plus the section-to-tier links."""

    seats: dict[int, SeatState] = field(default_factory=dict)
    section_tiers: dict[int, int | None] = field(default_factory=dict)

    @classmethod
    def for_event(cls, event_id: int, *, now: datetime | None = None) -> SeatingSnapshot:
        """Read the live chart for ``event_id``.

        Holds whose TTL has passed are reported as ``AVAILABLE``.
        """
        now = now or timezone.now()
        section_tiers = dict(SeatingSection.objects.filter(event_id=event_id).values_list("pk", "tier_id"))
        seats: dict[int, SeatState] = {}
        rows = Seat.objects.filter(section__event_id=event_id).values_list(
            "pk", "section_id", "status", "session_key", "hold_expires_at"
        )
        for pk, section_id, status, session_key, hold_expires_at in rows:
            if status == Seat.Status.HELD and (hold_expires_at is None or hold_expires_at <= now):
                status, session_key, hold_expires_at = Seat.Status.AVAILABLE, "", None
            seats[pk] = SeatState(pk, section_id, status, session_key, hold_expires_at)
        return cls(seats=seats, section_tiers=section_tiers)

    def sections_for_tier(self, tier_id: int) -> set[int]:
        """Return the ids of sections linked to ``tier_id``."""
        return {section_id for section_id, linked in self.section_tiers.items() if linked == tier_id}


@dataclass(frozen=True, slots=True)
class SeatCheck:
    """Outcome of validating a candidate seat set."""

    ok: bool
    reason: str | None = None
    seat_id: int | None = None


def is_required(tier_id: int | None, snapshot: SeatingSnapshot) -> bool:
    """Return True when ``tier_id`` is linked to a seating section."""
    if tier_id is None:
        return False
    return bool(snapshot.sections_for_tier(tier_id))


def validate(
    tier_id: int,
    quantity: int,
    candidate_seat_ids: Iterable[int],
    snapshot: SeatingSnapshot,
    *,
    session_key: str = "",
) -> SeatCheck:
    """Check that exactly ``quantity`` distinct, available seats were picked.

    Every seat must sit in a section linked to ``tier_id`` and be available
    in ``snapshot`` to the buyer's session.
    """
    seat_ids = sorted(set(candidate_seat_ids))
    if len(seat_ids) != quantity:
        return SeatCheck(ok=False, reason=COUNT_MISMATCH)

    allowed_sections = snapshot.sections_for_tier(tier_id)
    for seat_id in seat_ids:
        state = snapshot.seats.get(seat_id)
        if state is None or state.section_id not in allowed_sections or not state.is_available_to(session_key):
            return SeatCheck(ok=False, reason=SEAT_UNAVAILABLE, seat_id=seat_id)
    return SeatCheck(ok=True)


def hold_seats(event_id: int, seat_ids: Iterable[int], session_key: str) -> datetime:
    """Soft-hold seats while the buyer finishes picking.

    Returns:
        When the hold lapses.

    Raises:
        SeatsUnavailable: If any seat is taken; nothing is held then.
    """
    return inventory.hold_seats(event_id, list(seat_ids), session_key)


def release_holds(session_key: str) -> int:
    """Drop all soft holds owned by a buyer session."""
    return inventory.release_holds(session_key)
