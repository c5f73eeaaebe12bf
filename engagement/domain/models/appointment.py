"""
Appointment Domain Models
Slot reservations made by customers, staff or the booking assistant
"""
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import date, datetime, timedelta
from enum import Enum


class AppointmentStatus(str, Enum):
    """Status of an appointment"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


# Statuses that hold a slot
ACTIVE_STATUSES = [AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value]


class MeetingType(str, Enum):
    """How the appointment takes place"""
    IN_PERSON = "in-person"
    ONLINE = "online"
    PHONE = "phone"


class BookedBy(str, Enum):
    """Who created the appointment"""
    CUSTOMER = "customer"
    ADMIN = "admin"
    AUTOMATED_AGENT = "automated-agent"


class AppointmentDuration(int, Enum):
    """Allowed appointment lengths in minutes"""
    QUARTER = 15
    HALF = 30
    THREE_QUARTERS = 45
    HOUR = 60


class ContactInfo(BaseModel):
    """Customer contact details supplied with a booking request"""
    name: str
    email: str
    phone: str = ""

    def normalized(self) -> "ContactInfo":
        """Trim name, lowercase email, strip phone formatting."""
        return ContactInfo(
            name=self.name.strip(),
            email=self.email.strip().lower(),
            phone="".join(ch for ch in self.phone if ch.isdigit()),
        )


class Appointment(BaseModel):
    """A reserved (date, time) slot"""
    id: Optional[str] = None

    name: str
    email: str
    phone: str = ""
    service: str

    appointment_date: date
    appointment_time: str  # HH:MM, aligned to the slot grid
    duration: AppointmentDuration = AppointmentDuration.HALF
    meeting_type: MeetingType = MeetingType.ONLINE
    meeting_link: str = ""
    message: str = ""

    status: AppointmentStatus = AppointmentStatus.PENDING
    reminder_sent: bool = False
    booked_by: BookedBy = BookedBy.CUSTOMER

    admin_notes: str = ""
    cancel_reason: str = ""

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        use_enum_values = True
        validate_default = True

    @property
    def starts_at(self) -> datetime:
        """Combined wall-clock start of the appointment"""
        hours, minutes = map(int, self.appointment_time.split(":"))
        return datetime.combine(self.appointment_date, datetime.min.time()) + timedelta(
            hours=hours, minutes=minutes
        )

    @property
    def is_active(self) -> bool:
        """Whether the appointment still holds its slot"""
        return self.status in ACTIVE_STATUSES

    def to_record(self) -> Dict[str, Any]:
        """Fields to persist (identity and timestamps are store-managed)"""
        return self.model_dump(exclude={"id", "created_at", "updated_at"})
