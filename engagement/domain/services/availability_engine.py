"""
Availability Engine
Computes open appointment slots from business hours and existing bookings
"""
import logging
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Set

from pydantic import BaseModel

from engagement.domain.interfaces.record_store import RecordStore
from engagement.domain.models.appointment import ACTIVE_STATUSES
from engagement.domain.models.business_hours import BusinessHours, DAY_NAMES
from engagement.domain.services.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

APPOINTMENTS = "appointments"


class DaySlots(BaseModel):
    """Open slots remaining on one date"""
    date: date
    day_name: str
    slots: List[str]


class AvailabilityEngine:
    """
    Evaluates which (date, time) slots can still be booked.

    Rules applied:
    1. Slot lies inside that weekday's business-hours window
    2. Date is not in the past, and today's elapsed slots are dropped
    3. No pending or confirmed appointment already holds the slot
    """

    def __init__(
        self,
        store: RecordStore,
        business_hours: BusinessHours,
        clock: Optional[Callable[[], datetime]] = None,
        cache: Optional[TTLCache] = None
    ):
        self.store = store
        self.business_hours = business_hours
        self._clock = clock or business_hours.now
        self._cache = cache if cache is not None else TTLCache(ttl_seconds=0)

    @property
    def slot_minutes(self) -> int:
        return self.business_hours.slot_minutes

    def now(self) -> datetime:
        return self._clock()

    def generate_time_slots(self, day: date) -> List[str]:
        """
        Business-hours slots for a date, ignoring existing bookings.

        Returns [] for closed days and for dates before today.
        """
        if day < self.now().date():
            return []
        return self.business_hours.slots_for(day)

    def booked_times(self, day: date) -> Set[str]:
        """Times on a date held by pending or confirmed appointments."""
        records = self.store.find(
            APPOINTMENTS,
            {"appointment_date": day, "status": {"$in": ACTIVE_STATUSES}}
        )
        return {record["appointment_time"] for record in records}

    def _is_elapsed(self, day: date, time_str: str) -> bool:
        hours, minutes = map(int, time_str.split(":"))
        starts_at = datetime.combine(day, datetime.min.time()) + timedelta(hours=hours, minutes=minutes)
        return starts_at <= self.now()

    def is_within_hours(self, day: date, time_str: str) -> bool:
        """Whether (date, time) is an upcoming slot on the business-hours grid."""
        if time_str not in self.generate_time_slots(day):
            return False
        return not self._is_elapsed(day, time_str)

    def is_bookable(self, day: date, time_str: str) -> bool:
        """Whether (date, time) is an upcoming slot that nobody holds."""
        if not self.is_within_hours(day, time_str):
            return False
        return time_str not in self.booked_times(day)

    def open_slots_for(self, day: date) -> List[str]:
        """Upcoming slots on a date that no active appointment holds."""
        slots = self.generate_time_slots(day)
        if not slots:
            return []

        booked = self.booked_times(day)
        today = self.now().date()
        return [
            slot for slot in slots
            if slot not in booked and not (day == today and self._is_elapsed(day, slot))
        ]

    def available_slots(self, days_ahead: int = 7) -> List[DaySlots]:
        """
        Open slots for today and the following days.

        Only dates with at least one remaining slot are returned, in
        chronological order.
        """
        today = self.now().date()
        return self._cache.get_or_load(
            (today, days_ahead),
            lambda: self._compute_available_slots(today, days_ahead)
        )

    def _compute_available_slots(self, today: date, days_ahead: int) -> List[DaySlots]:
        result = []
        for offset in range(days_ahead):
            day = today + timedelta(days=offset)
            slots = self.open_slots_for(day)
            if slots:
                result.append(DaySlots(date=day, day_name=DAY_NAMES[day.weekday()], slots=slots))

        logger.debug(f"Computed availability for {days_ahead} days: {len(result)} open dates")
        return result

    def invalidate(self) -> None:
        """Forget cached availability after a booking change."""
        self._cache.invalidate()
