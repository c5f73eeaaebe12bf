"""
Engagement Service
Request-level flows across bookings, leads and notifications.

This is the surface an HTTP layer calls. A booking is the primary effect of
book_appointment; the notices, lead capture and confirmation that follow
are best-effort and never undo it.
"""
import logging
from datetime import date
from typing import List, Optional

from engagement.core.config import EngagementConfig, Settings, get_engagement_config, get_settings
from engagement.domain.interfaces.notifier import Notifier, DeliveryResult
from engagement.domain.interfaces.record_store import RecordStore
from engagement.domain.models.appointment import (
    Appointment,
    AppointmentStatus,
    ContactInfo,
    MeetingType,
)
from engagement.domain.models.lead import ActivityType, CaptureEvent, Lead, LeadSource
from engagement.domain.models.notification import Notification, NotificationType, RecipientSpec
from engagement.domain.services.availability_engine import AvailabilityEngine, DaySlots
from engagement.domain.services.message_templates import MessageTemplateManager
from engagement.domain.services.ttl_cache import TTLCache
from engagement.services.booking_service import BookingService
from engagement.services.lead_service import LeadService
from engagement.services.notification_service import NotificationService
from engagement.workers.automation_runner import AutomationRunner, ScanReport

logger = logging.getLogger(__name__)

# Lead sources whose inquiry has its own staff notice
SOURCE_CHANNELS = {
    LeadSource.QUOTE_REQUEST.value: NotificationType.QUOTE,
    LeadSource.CONTACT_FORM.value: NotificationType.CONTACT,
    LeadSource.BOOKING.value: NotificationType.BOOKING,
}


class EngagementService:
    """
    Facade over the engagement components.

    Integration Points:
    - Website forms and booking widget (via HTTP layer)
    - Booking assistant (auto_book_appointment, suggest_slots)
    - Staff dashboard (status changes, leads, notifications)
    """

    def __init__(
        self,
        availability: AvailabilityEngine,
        bookings: BookingService,
        leads: LeadService,
        notifications: NotificationService,
        notifier: Notifier,
        templates: MessageTemplateManager,
        runner: AutomationRunner
    ):
        self.availability = availability
        self.bookings = bookings
        self.leads = leads
        self.notifications = notifications
        self.notifier = notifier
        self.templates = templates
        self.runner = runner

    async def _after_booking(self, appointment: Appointment) -> None:
        """Notices, lead capture and confirmation for a fresh booking."""
        try:
            await self.notifications.notify_appointment_received(appointment)
        except Exception as e:
            logger.error(f"Booking notices failed for appointment {appointment.id}: {e}")

        try:
            await self.leads.capture(CaptureEvent(
                name=appointment.name,
                email=appointment.email,
                phone=appointment.phone or None,
                source=LeadSource.APPOINTMENT,
                service=appointment.service,
                message=appointment.message or None,
            ))
            await self.leads.track_activity(
                appointment.email,
                ActivityType.APPOINTMENT_BOOK,
                description=f"Booked {appointment.service}",
                metadata={
                    "appointment_id": appointment.id,
                    "date": appointment.appointment_date.isoformat(),
                    "time": appointment.appointment_time,
                },
            )
        except Exception as e:
            logger.error(f"Lead capture failed for appointment {appointment.id}: {e}")

        result = await self._send_confirmation(appointment)
        if not result.success:
            logger.warning(f"Confirmation for appointment {appointment.id} not delivered: {result.error}")

    async def _send_confirmation(self, appointment: Appointment) -> DeliveryResult:
        try:
            message = self.templates.render_appointment_confirmation(appointment)
            return await self.notifier.send(appointment.email, message)
        except Exception as e:
            return DeliveryResult(
                success=False,
                provider=self.notifier.provider_name,
                destination=appointment.email,
                error=str(e)
            )

    async def book_appointment(
        self,
        day: date,
        time: str,
        contact: ContactInfo,
        service: str,
        meeting_type: MeetingType = MeetingType.ONLINE,
        message: str = ""
    ) -> Appointment:
        """
        Customer booking of a specific slot.

        Raises:
            SlotUnavailable: Slot outside business hours or in the past
            SlotConflict: Slot already held
        """
        appointment = await self.bookings.reserve(
            day, time, contact, service, meeting_type=meeting_type, message=message
        )
        await self._after_booking(appointment)
        return appointment

    async def auto_book_appointment(
        self,
        contact: ContactInfo,
        service: str,
        preferred_date: Optional[date] = None,
        preferred_time: Optional[str] = None,
        message: str = ""
    ) -> Appointment:
        """
        Assistant booking: preferred slot or the earliest open one.

        Raises:
            NoAvailability: Nothing open in the look-ahead window
        """
        appointment = await self.bookings.auto_reserve(
            contact, service, preferred_date=preferred_date, preferred_time=preferred_time, message=message
        )
        await self._after_booking(appointment)
        return appointment

    async def capture_lead(
        self,
        event: CaptureEvent,
        inquiry_id: Optional[str] = None,
        channel: Optional[NotificationType] = None
    ) -> Lead:
        """
        Capture a lead and notify staff the first time it appears.

        When the website stored the inquiry itself (a quote request, contact
        message, booking or consultation), pass its id as `inquiry_id` for a
        channel notice too. The channel follows the lead source unless given.
        """
        lead = await self.leads.capture(event)
        try:
            await self.notifications.notify_lead_captured(lead)
        except Exception as e:
            logger.error(f"Lead notice failed for lead {lead.id}: {e}")

        channel = channel or SOURCE_CHANNELS.get(LeadSource(event.source).value)
        if inquiry_id and channel:
            channel = NotificationType(channel).value
            try:
                await self.notifications.notify_inquiry_received(channel, inquiry_id, event)
            except Exception as e:
                logger.error(f"Inquiry notice failed for {channel} {inquiry_id}: {e}")
        return lead

    async def change_appointment_status(
        self,
        appointment_id: str,
        status: AppointmentStatus,
        admin_notes: Optional[str] = None,
        meeting_link: Optional[str] = None,
        cancel_reason: str = ""
    ) -> Appointment:
        """
        Staff status change with a customer notice per distinct status.

        Raises:
            NotFound: Unknown appointment id
            SlotConflict: Re-activating onto a slot someone else holds
        """
        if AppointmentStatus(status) == AppointmentStatus.CANCELLED:
            appointment = await self.bookings.cancel(appointment_id, cancel_reason)
            if admin_notes is not None or meeting_link is not None:
                appointment = await self.bookings.update_status(
                    appointment_id, status, admin_notes=admin_notes, meeting_link=meeting_link
                )
        else:
            appointment = await self.bookings.update_status(
                appointment_id, status, admin_notes=admin_notes, meeting_link=meeting_link
            )

        try:
            await self.notifications.notify_appointment_status_changed(appointment)
        except Exception as e:
            logger.error(f"Status notice failed for appointment {appointment_id}: {e}")
        return appointment

    async def cancel_appointment(self, appointment_id: str, reason: str = "") -> Appointment:
        return await self.change_appointment_status(
            appointment_id, AppointmentStatus.CANCELLED, cancel_reason=reason
        )

    # ------------------------------------------------------------------
    # Read surface and manual triggers
    # ------------------------------------------------------------------

    async def available_slots(self, days_ahead: int = 7) -> List[DaySlots]:
        return self.availability.available_slots(days_ahead)

    async def suggest_slots(self) -> List[DaySlots]:
        return await self.bookings.suggest_slots()

    async def list_notifications(
        self,
        recipient: RecipientSpec,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        return await self.notifications.list_notifications(recipient, unread_only=unread_only, limit=limit)

    async def unread_count(self, recipient: RecipientSpec) -> int:
        return await self.notifications.unread_count(recipient)

    async def mark_read(self, notification_id: str) -> Notification:
        return await self.notifications.mark_read(notification_id)

    async def mark_all_read(self, recipient: RecipientSpec) -> int:
        return await self.notifications.mark_all_read(recipient)

    async def run_reminder_scan_now(self) -> ScanReport:
        return await self.runner.run_reminder_scan_now()

    async def run_follow_up_scan_now(self) -> ScanReport:
        return await self.runner.run_follow_up_scan_now()

    async def send_follow_up(self, lead_id: str) -> DeliveryResult:
        return await self.runner.send_follow_up(lead_id)


def build_engagement_service(
    settings: Optional[Settings] = None,
    config: Optional[EngagementConfig] = None,
    store: Optional[RecordStore] = None,
    notifier: Optional[Notifier] = None
) -> EngagementService:
    """
    Wire the engagement components from settings and business policy.

    Store and notifier can be injected; otherwise they are built from
    DATABASE_URL and the `notifier` setting.
    """
    settings = settings or get_settings()
    config = config or get_engagement_config()

    if store is None:
        from engagement.infrastructure.storage import SQLRecordStore
        store = SQLRecordStore.from_url(settings.database_url)
    if notifier is None:
        from engagement.infrastructure.notifiers import create_notifier
        notifier = create_notifier(settings)

    clock = config.business.now
    availability = AvailabilityEngine(
        store,
        config.business,
        clock=clock,
        cache=TTLCache(ttl_seconds=config.booking.availability_cache_ttl_seconds)
    )
    bookings = BookingService(store, availability, policy=config.booking)
    leads = LeadService(store, policy=config.leads, clock=clock)
    templates = MessageTemplateManager(site_context={
        "site_name": config.site.name,
        "frontend_url": config.site.frontend_url,
        "contact_phone": config.site.contact_phone,
        "contact_email": config.site.contact_email,
    })
    runner = AutomationRunner(
        bookings,
        leads,
        notifier,
        templates,
        policy=config.automation,
        clock=clock
    )

    logger.info(
        f"Engagement service ready (timezone: {config.business.timezone}, "
        f"notifier: {notifier.provider_name})"
    )

    return EngagementService(
        availability=availability,
        bookings=bookings,
        leads=leads,
        notifications=NotificationService(store),
        notifier=notifier,
        templates=templates,
        runner=runner
    )


# Singleton instance helper
_engagement_service: Optional[EngagementService] = None


def get_engagement_service() -> EngagementService:
    """Get or create the process-wide EngagementService."""
    global _engagement_service
    if _engagement_service is None:
        _engagement_service = build_engagement_service()
    return _engagement_service
