"""
Services Package
Application services for bookings, leads and notifications
"""
from engagement.services.booking_service import BookingService
from engagement.services.lead_service import LeadService, LeadStats
from engagement.services.notification_service import NotificationService

__all__ = [
    "BookingService",
    "LeadService",
    "LeadStats",
    "NotificationService",
]
