"""
Domain Errors
Failures surfaced to callers of the booking, lead and notification services
"""
from datetime import date
from typing import Optional


class EngagementError(Exception):
    """Base class; `message` is safe to show to end users."""
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class SlotUnavailable(EngagementError):
    """Requested time is outside business hours or the booking window."""
    default_message = "The requested time is not available. Please pick one of the offered slots."

    def __init__(self, message: Optional[str] = None, day: Optional[date] = None, time: Optional[str] = None):
        self.day = day
        self.time = time
        super().__init__(message)


class SlotConflict(EngagementError):
    """Another booking already holds the slot."""
    default_message = "This time slot is already booked. Please choose another slot."

    def __init__(self, message: Optional[str] = None, day: Optional[date] = None, time: Optional[str] = None):
        self.day = day
        self.time = time
        super().__init__(message)


class NoAvailability(EngagementError):
    """The look-ahead window has no free slot left."""
    default_message = "No available slots found. Please contact us directly."


class NotFound(EngagementError):
    """Unknown entity id."""
    default_message = "Record not found."

    def __init__(self, entity: str = "Record", entity_id: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class DeliveryError(EngagementError):
    """Outbound message could not be delivered (non-fatal)."""
    default_message = "Message delivery failed."

    def __init__(self, message: Optional[str] = None, destination: Optional[str] = None):
        self.destination = destination
        super().__init__(message)
