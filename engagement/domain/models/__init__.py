"""Domain models"""

from .business_hours import (
    BusinessHours,
    DayWindow,
)

from .appointment import (
    AppointmentStatus,
    MeetingType,
    BookedBy,
    AppointmentDuration,
    ContactInfo,
    Appointment,
    ACTIVE_STATUSES,
)

from .lead import (
    LeadSource,
    LeadStatus,
    LeadPriority,
    Budget,
    ActivityType,
    LeadActivity,
    CaptureEvent,
    Lead,
)

from .notification import (
    NotificationType,
    RecipientClass,
    RecipientSpec,
    NotificationContent,
    Notification,
)

__all__ = [
    # Scheduling
    "BusinessHours",
    "DayWindow",
    # Appointments
    "AppointmentStatus",
    "MeetingType",
    "BookedBy",
    "AppointmentDuration",
    "ContactInfo",
    "Appointment",
    "ACTIVE_STATUSES",
    # Leads
    "LeadSource",
    "LeadStatus",
    "LeadPriority",
    "Budget",
    "ActivityType",
    "LeadActivity",
    "CaptureEvent",
    "Lead",
    # Notifications
    "NotificationType",
    "RecipientClass",
    "RecipientSpec",
    "NotificationContent",
    "Notification",
]
