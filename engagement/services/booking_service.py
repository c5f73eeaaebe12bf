"""
Booking Service
Reserves appointment slots against business hours and existing bookings.

Slot exclusivity is enforced twice: a read against the availability engine
gives callers a friendly error in the common case, and the record store's
unique index on active (date, time) pairs settles concurrent requests.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Optional, List

from engagement.core.config import BookingPolicy
from engagement.domain.errors import SlotUnavailable, SlotConflict, NoAvailability, NotFound
from engagement.domain.interfaces.record_store import RecordStore, DuplicateKeyError
from engagement.domain.models.appointment import (
    Appointment,
    AppointmentStatus,
    AppointmentDuration,
    BookedBy,
    ContactInfo,
    MeetingType,
    ACTIVE_STATUSES,
)
from engagement.domain.services.availability_engine import AvailabilityEngine, DaySlots, APPOINTMENTS

logger = logging.getLogger(__name__)


class BookingService:
    """
    Appointment reservation and lifecycle.

    Responsibilities:
    - Validate requested slots against business hours
    - Insert appointments without double-booking a slot
    - Pick the earliest open slot for automated bookings
    - Cancel and transition appointments for staff
    - Keep the availability cache in step with every change
    """

    def __init__(
        self,
        store: RecordStore,
        availability: AvailabilityEngine,
        policy: Optional[BookingPolicy] = None
    ):
        self.store = store
        self.availability = availability
        self.policy = policy or BookingPolicy()

    def _load(self, appointment_id: str) -> Appointment:
        record = self.store.find_one(APPOINTMENTS, {"id": appointment_id})
        if record is None:
            raise NotFound("Appointment", appointment_id)
        return Appointment.model_validate(record)

    def _insert(self, appointment: Appointment) -> Appointment:
        """Insert an appointment, translating a lost slot race to SlotConflict."""
        try:
            record = self.store.insert(APPOINTMENTS, appointment.to_record())
        except DuplicateKeyError:
            logger.info(
                f"Slot {appointment.appointment_date} {appointment.appointment_time} "
                f"taken by a concurrent booking"
            )
            raise SlotConflict(day=appointment.appointment_date, time=appointment.appointment_time)
        finally:
            self.availability.invalidate()

        return Appointment.model_validate(record)

    async def reserve(
        self,
        day: date,
        time: str,
        contact: ContactInfo,
        service: str,
        meeting_type: MeetingType = MeetingType.ONLINE,
        booked_by: BookedBy = BookedBy.CUSTOMER,
        message: str = "",
        duration: AppointmentDuration = AppointmentDuration.HALF
    ) -> Appointment:
        """
        Reserve one specific slot.

        Args:
            day: Appointment date
            time: Slot start ("HH:MM")
            contact: Customer name, email and phone
            service: Requested service
            meeting_type: in-person, online or phone
            booked_by: Who is making the booking
            message: Free-text note from the customer

        Returns:
            The stored appointment with status pending

        Raises:
            SlotUnavailable: Slot is outside business hours or in the past
            SlotConflict: Slot is already held by another booking
        """
        if not self.availability.is_within_hours(day, time):
            raise SlotUnavailable(day=day, time=time)

        if time in self.availability.booked_times(day):
            raise SlotConflict(day=day, time=time)

        contact = contact.normalized()
        appointment = Appointment(
            name=contact.name,
            email=contact.email,
            phone=contact.phone,
            service=service.strip(),
            appointment_date=day,
            appointment_time=time,
            duration=duration,
            meeting_type=meeting_type,
            message=message.strip(),
            status=AppointmentStatus.PENDING,
            booked_by=booked_by,
        )

        created = self._insert(appointment)
        logger.info(f"Appointment {created.id} reserved for {day} {time} ({created.booked_by})")
        return created

    async def auto_reserve(
        self,
        contact: ContactInfo,
        service: str,
        preferred_date: Optional[date] = None,
        preferred_time: Optional[str] = None,
        message: str = "",
        meeting_type: MeetingType = MeetingType.ONLINE
    ) -> Appointment:
        """
        Book the preferred slot if free, otherwise the earliest open slot.

        Candidates are tried in date-then-time order across the look-ahead
        window; a slot lost to a concurrent booking moves on to the next one.

        Raises:
            NoAvailability: No slot left in the look-ahead window
        """
        if preferred_date and preferred_time:
            try:
                return await self.reserve(
                    preferred_date,
                    preferred_time,
                    contact,
                    service,
                    meeting_type=meeting_type,
                    booked_by=BookedBy.AUTOMATED_AGENT,
                    message=message,
                )
            except (SlotUnavailable, SlotConflict) as e:
                logger.info(f"Preferred slot {preferred_date} {preferred_time} not bookable: {e.message}")

        today = self.availability.now().date()
        for offset in range(self.policy.lookahead_days):
            day = today + timedelta(days=offset)
            for slot in self.availability.open_slots_for(day):
                try:
                    return await self.reserve(
                        day,
                        slot,
                        contact,
                        service,
                        meeting_type=meeting_type,
                        booked_by=BookedBy.AUTOMATED_AGENT,
                        message=message,
                    )
                except (SlotUnavailable, SlotConflict):
                    continue

        logger.warning(f"No availability in the next {self.policy.lookahead_days} days")
        raise NoAvailability()

    async def cancel(self, appointment_id: str, reason: str = "") -> Appointment:
        """
        Cancel an appointment and free its slot.

        Cancelling an already cancelled appointment returns it unchanged.

        Raises:
            NotFound: Unknown appointment id
        """
        appointment = self._load(appointment_id)
        if appointment.status == AppointmentStatus.CANCELLED.value:
            return appointment

        record = self.store.update_by_id(
            APPOINTMENTS,
            appointment_id,
            {"status": AppointmentStatus.CANCELLED.value, "cancel_reason": reason.strip()}
        )
        self.availability.invalidate()
        if record is None:
            raise NotFound("Appointment", appointment_id)

        logger.info(f"Appointment {appointment_id} cancelled")
        return Appointment.model_validate(record)

    async def update_status(
        self,
        appointment_id: str,
        status: AppointmentStatus,
        admin_notes: Optional[str] = None,
        meeting_link: Optional[str] = None
    ) -> Appointment:
        """
        Move an appointment to a new status (staff action).

        Raises:
            NotFound: Unknown appointment id
            SlotConflict: Re-activating onto a slot someone else now holds
        """
        status = AppointmentStatus(status).value
        self._load(appointment_id)

        patch = {"status": status}
        if admin_notes is not None:
            patch["admin_notes"] = admin_notes
        if meeting_link is not None:
            patch["meeting_link"] = meeting_link

        try:
            record = self.store.update_by_id(APPOINTMENTS, appointment_id, patch)
        except DuplicateKeyError:
            raise SlotConflict()
        finally:
            self.availability.invalidate()

        if record is None:
            raise NotFound("Appointment", appointment_id)

        logger.info(f"Appointment {appointment_id} status -> {status}")
        return Appointment.model_validate(record)

    async def get(self, appointment_id: str) -> Appointment:
        """Fetch one appointment; raises NotFound."""
        return self._load(appointment_id)

    async def list_appointments(
        self,
        status: Optional[AppointmentStatus] = None,
        day: Optional[date] = None,
        email: Optional[str] = None
    ) -> List[Appointment]:
        """Appointments matching the filters, newest first."""
        query = {}
        if status:
            query["status"] = AppointmentStatus(status).value
        if day:
            query["appointment_date"] = day
        if email:
            query["email"] = email.strip().lower()

        records = self.store.find(APPOINTMENTS, query, sort=[("created_at", -1)])
        return [Appointment.model_validate(r) for r in records]

    async def list_for_email(self, email: str) -> List[Appointment]:
        """A customer's appointments in calendar order."""
        records = self.store.find(
            APPOINTMENTS,
            {"email": email.strip().lower()},
            sort=[("appointment_date", 1), ("appointment_time", 1)]
        )
        return [Appointment.model_validate(r) for r in records]

    async def delete(self, appointment_id: str) -> None:
        """
        Remove an appointment record (staff action).

        Notifications referring to it are kept.
        """
        if not self.store.delete_by_id(APPOINTMENTS, appointment_id):
            raise NotFound("Appointment", appointment_id)
        self.availability.invalidate()
        logger.info(f"Appointment {appointment_id} deleted")

    async def suggest_slots(
        self,
        days: Optional[int] = None,
        max_days: int = 3,
        per_day: int = 4
    ) -> List[DaySlots]:
        """First few open dates with their earliest slots, for conversational booking."""
        available = self.availability.available_slots(days or self.policy.suggestion_days)
        return [
            DaySlots(date=d.date, day_name=d.day_name, slots=d.slots[:per_day])
            for d in available[:max_days]
        ]

    async def due_for_reminder(self, window_start: datetime, window_end: datetime) -> List[Appointment]:
        """Active, un-reminded appointments starting inside [window_start, window_end]."""
        days = []
        day = window_start.date()
        while day <= window_end.date():
            days.append(day)
            day += timedelta(days=1)

        records = self.store.find(
            APPOINTMENTS,
            {
                "appointment_date": {"$in": days},
                "status": {"$in": ACTIVE_STATUSES},
                "reminder_sent": False,
            },
            sort=[("appointment_date", 1), ("appointment_time", 1)]
        )
        appointments = [Appointment.model_validate(r) for r in records]
        return [a for a in appointments if a.is_active and window_start <= a.starts_at <= window_end]

    async def mark_reminder_sent(self, appointment_id: str) -> bool:
        """Flip reminder_sent false -> true; False if it was already set."""
        record = self.store.update_by_id(
            APPOINTMENTS,
            appointment_id,
            {"reminder_sent": True},
            expected={"reminder_sent": False}
        )
        return record is not None
