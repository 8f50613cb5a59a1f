"""Tests for the seat requirement gate in django_boxoffice.checkout.services.seating."""

from datetime import timedelta

import pytest
from django.utils import timezone

from django_boxoffice.checkout.models import Seat, SeatingSection, TicketTier
from django_boxoffice.checkout.services import seating
from django_boxoffice.checkout.services.seating import SeatingSnapshot, SeatState
from django_boxoffice.events.models import Event

TIER_ID = 7
SECTION_ID = 70
OTHER_SECTION_ID = 71

# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def snapshot():
    return SeatingSnapshot(
        seats={
            1: SeatState(1, SECTION_ID, Seat.Status.AVAILABLE),
            2: SeatState(2, SECTION_ID, Seat.Status.AVAILABLE),
            3: SeatState(3, SECTION_ID, Seat.Status.SOLD),
            4: SeatState(4, SECTION_ID, Seat.Status.HELD, session_key="sess-1"),
            5: SeatState(5, OTHER_SECTION_ID, Seat.Status.AVAILABLE),
        },
        section_tiers={SECTION_ID: TIER_ID, OTHER_SECTION_ID: None},
    )


# =============================================================================
# TestIsRequired
# =============================================================================


@pytest.mark.unit
class TestIsRequired:
    def test_linked_tier_requires_seats(self, snapshot):
        assert seating.is_required(TIER_ID, snapshot) is True

    def test_unlinked_tier(self, snapshot):
        assert seating.is_required(TIER_ID + 1, snapshot) is False

    def test_no_tier(self, snapshot):
        assert seating.is_required(None, snapshot) is False


# =============================================================================
# TestValidate
# =============================================================================


@pytest.mark.unit
class TestValidate:
    def test_exact_available_seats(self, snapshot):
        assert seating.validate(TIER_ID, 2, [1, 2], snapshot).ok is True

    def test_too_few_seats(self, snapshot):
        check = seating.validate(TIER_ID, 2, [1], snapshot)

        assert check.ok is False
        assert check.reason == seating.COUNT_MISMATCH

    def test_duplicate_seats_do_not_count_twice(self, snapshot):
        assert seating.validate(TIER_ID, 2, [1, 1], snapshot).reason == seating.COUNT_MISMATCH

    def test_sold_seat(self, snapshot):
        check = seating.validate(TIER_ID, 2, [1, 3], snapshot)

        assert check.reason == seating.SEAT_UNAVAILABLE
        assert check.seat_id == 3

    def test_unknown_seat(self, snapshot):
        assert seating.validate(TIER_ID, 1, [99], snapshot).seat_id == 99

    def test_seat_in_unlinked_section(self, snapshot):
        check = seating.validate(TIER_ID, 1, [5], snapshot)

        assert check.reason == seating.SEAT_UNAVAILABLE
        assert check.seat_id == 5

    def test_own_hold_is_available(self, snapshot):
        assert seating.validate(TIER_ID, 1, [4], snapshot, session_key="sess-1").ok is True

    def test_someone_elses_hold(self, snapshot):
        assert seating.validate(TIER_ID, 1, [4], snapshot, session_key="sess-2").seat_id == 4
        assert seating.validate(TIER_ID, 1, [4], snapshot).ok is False


# =============================================================================
# TestSnapshot
# =============================================================================


@pytest.mark.django_db
class TestSnapshot:
    def test_for_event_reads_live_chart(self):
        event = Event.objects.create(name="Summer Fest", slug="summer-fest")
        tier = TicketTier.objects.create(event=event, name="Floor", slug="floor", price_cents=5000, capacity=2)
        section = SeatingSection.objects.create(event=event, name="Floor", tier=tier)
        free = Seat.objects.create(section=section, label="A1")
        lapsed = Seat.objects.create(
            section=section,
            label="A2",
            status=Seat.Status.HELD,
            session_key="sess-1",
            hold_expires_at=timezone.now() - timedelta(minutes=1),
        )

        snapshot = SeatingSnapshot.for_event(event.pk)

        assert snapshot.sections_for_tier(tier.pk) == {section.pk}
        assert snapshot.seats[free.pk].status == Seat.Status.AVAILABLE
        assert snapshot.seats[lapsed.pk].status == Seat.Status.AVAILABLE
        assert snapshot.seats[lapsed.pk].session_key == ""
        assert seating.is_required(tier.pk, snapshot) is True
