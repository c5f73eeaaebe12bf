"""
Tests for the Availability Engine
"""
import pytest
from datetime import date, datetime, timedelta

from engagement.domain.models.appointment import Appointment, AppointmentStatus
from engagement.domain.models.business_hours import BusinessHours, DayWindow
from engagement.domain.services.availability_engine import AvailabilityEngine, APPOINTMENTS
from engagement.domain.services.ttl_cache import TTLCache

MONDAY = date(2025, 3, 10)
SATURDAY = date(2025, 3, 8)
SUNDAY = date(2025, 3, 9)


def book(store, day, time, status=AppointmentStatus.PENDING):
    appointment = Appointment(
        name="Test Customer",
        email="customer@example.com",
        service="GST Registration",
        appointment_date=day,
        appointment_time=time,
        status=status,
    )
    return store.insert(APPOINTMENTS, appointment.to_record())


class TestGenerateTimeSlots:
    """Tests for the business-hours slot grid"""

    def test_weekday_slots(self, availability):
        """Mon-Fri runs 09:00 to 17:30 in 30 minute steps"""
        slots = availability.generate_time_slots(MONDAY)

        assert slots[0] == "09:00"
        assert slots[-1] == "17:30"
        assert len(slots) == 18

    def test_saturday_short_day(self, availability):
        slots = availability.generate_time_slots(SATURDAY)
        assert slots == ["10:00", "10:30", "11:00", "11:30", "12:00", "12:30", "13:00", "13:30"]

    def test_sunday_closed(self, availability):
        assert availability.generate_time_slots(SUNDAY) == []

    def test_past_date_has_no_slots(self, availability):
        assert availability.generate_time_slots(date(2025, 3, 6)) == []

    def test_slots_strictly_increasing_by_width(self, availability):
        """Consecutive slots are exactly slot_minutes apart"""
        slots = availability.generate_time_slots(MONDAY)
        starts = [datetime.strptime(s, "%H:%M") for s in slots]

        for earlier, later in zip(starts, starts[1:]):
            assert later - earlier == timedelta(minutes=30)

    def test_custom_slot_width(self, store, clock):
        hours = BusinessHours(slot_minutes=45, hours={0: DayWindow(start="09:00", end="11:00")})
        engine = AvailabilityEngine(store, hours, clock=clock)

        assert engine.generate_time_slots(MONDAY) == ["09:00", "09:45", "10:30"]


class TestAvailableSlots:
    """Tests for available_slots"""

    def test_booked_slots_removed(self, availability, store):
        book(store, MONDAY, "10:00")
        book(store, MONDAY, "11:30", status=AppointmentStatus.CONFIRMED)

        monday = next(d for d in availability.available_slots(7) if d.date == MONDAY)

        assert "10:00" not in monday.slots
        assert "11:30" not in monday.slots
        assert "10:30" in monday.slots
        assert monday.day_name == "Monday"

    def test_cancelled_and_completed_do_not_hold_slots(self, availability, store):
        book(store, MONDAY, "10:00", status=AppointmentStatus.CANCELLED)
        book(store, MONDAY, "10:30", status=AppointmentStatus.COMPLETED)

        monday = next(d for d in availability.available_slots(7) if d.date == MONDAY)

        assert "10:00" in monday.slots
        assert "10:30" in monday.slots

    def test_closed_days_omitted(self, availability):
        """Friday, Saturday, Sunday -> Sunday is left out"""
        days = availability.available_slots(3)

        assert [d.date for d in days] == [date(2025, 3, 7), SATURDAY]

    def test_elapsed_slots_today_dropped(self, availability, clock):
        clock.set(datetime(2025, 3, 7, 12, 10))

        today = availability.available_slots(1)[0]

        assert today.slots[0] == "12:30"

    def test_fully_booked_day_omitted(self, availability, store):
        for slot in availability.generate_time_slots(SATURDAY):
            book(store, SATURDAY, slot)

        dates = [d.date for d in availability.available_slots(7)]

        assert SATURDAY not in dates
        assert MONDAY in dates

    def test_chronological_order(self, availability):
        dates = [d.date for d in availability.available_slots(14)]
        assert dates == sorted(dates)


class TestIsBookable:
    """Tests for slot membership checks"""

    def test_open_slot_bookable(self, availability):
        assert availability.is_bookable(MONDAY, "10:00") is True

    def test_off_grid_time_not_bookable(self, availability):
        assert availability.is_bookable(MONDAY, "10:15") is False

    def test_outside_hours_not_bookable(self, availability):
        assert availability.is_bookable(MONDAY, "18:00") is False
        assert availability.is_bookable(SUNDAY, "10:00") is False

    def test_booked_slot_not_bookable(self, availability, store):
        book(store, MONDAY, "10:00")
        assert availability.is_bookable(MONDAY, "10:00") is False

    def test_elapsed_slot_today_not_bookable(self, availability):
        assert availability.is_bookable(date(2025, 3, 7), "09:00") is False
        assert availability.is_bookable(date(2025, 3, 7), "09:30") is True


class TestAvailabilityCache:
    """Tests for cached availability"""

    def test_cached_until_invalidated(self, store, business_hours, clock):
        ticks = [0.0]
        engine = AvailabilityEngine(
            store,
            business_hours,
            clock=clock,
            cache=TTLCache(ttl_seconds=60, clock=lambda: ticks[0])
        )

        before = engine.available_slots(7)
        book(store, MONDAY, "10:00")

        assert engine.available_slots(7) == before

        engine.invalidate()
        monday = next(d for d in engine.available_slots(7) if d.date == MONDAY)
        assert "10:00" not in monday.slots

    def test_cache_expires(self, store, business_hours, clock):
        ticks = [0.0]
        engine = AvailabilityEngine(
            store,
            business_hours,
            clock=clock,
            cache=TTLCache(ttl_seconds=60, clock=lambda: ticks[0])
        )

        engine.available_slots(7)
        book(store, MONDAY, "10:00")
        ticks[0] = 61.0

        monday = next(d for d in engine.available_slots(7) if d.date == MONDAY)
        assert "10:00" not in monday.slots

    def test_injected_empty_cache_is_used(self, store, business_hours, clock):
        cache = TTLCache(ttl_seconds=60)
        engine = AvailabilityEngine(store, business_hours, clock=clock, cache=cache)

        engine.available_slots(7)
        engine.available_slots(7)

        assert engine._cache is cache
        assert (cache.hits, cache.misses) == (1, 1)
