"""
Notification Service
Stores in-app notifications for staff and customers.

"The same notification" is identified by a dedup key stored under a unique
index, so repeated or concurrent triggers for one entity produce a single
record without a check-then-insert race.
"""
import logging
from typing import List, Optional, Tuple

from engagement.domain.errors import NotFound
from engagement.domain.interfaces.record_store import RecordStore, DuplicateKeyError
from engagement.domain.models.appointment import Appointment
from engagement.domain.models.lead import CaptureEvent, Lead
from engagement.domain.models.notification import (
    Notification,
    NotificationContent,
    NotificationType,
    RecipientSpec,
    build_dedup_key,
)

logger = logging.getLogger(__name__)

NOTIFICATIONS = "notifications"

# channel -> (title, phrase, admin link, related model)
INQUIRY_NOTICES = {
    NotificationType.BOOKING.value: ("New Booking Received", "has booked", "/admin/bookings", "Booking"),
    NotificationType.QUOTE.value: ("New Quote Request", "requested a quote for", "/admin/quotes", "Quote"),
    NotificationType.CONSULTATION.value: (
        "New Consultation Request", "requested consultation for", "/admin/consultations", "Consultation"
    ),
    NotificationType.CONTACT.value: ("New Contact Message", "sent a message", "/admin/contacts", "Contact"),
}


class NotificationService:
    """Deduplicated notification creation plus the read/unread surface."""

    def __init__(self, store: RecordStore):
        self.store = store

    def _insert_once(
        self,
        type: NotificationType,
        related_id: Optional[str],
        recipient: RecipientSpec,
        content: NotificationContent,
        related_model: Optional[str],
        action: Optional[str]
    ) -> Tuple[Notification, bool]:
        type = NotificationType(type).value
        dedup_key = build_dedup_key(type, related_id, recipient.recipient, recipient.recipient_id, action)

        metadata = dict(content.metadata)
        if action:
            metadata["action"] = action

        notification = Notification(
            type=type,
            title=content.title,
            message=content.message,
            related_id=related_id,
            related_model=related_model,
            recipient=recipient.recipient,
            recipient_id=recipient.recipient_id,
            link=content.link,
            metadata=metadata,
            dedup_key=dedup_key,
        )

        try:
            record = self.store.insert(NOTIFICATIONS, notification.to_record())
        except DuplicateKeyError:
            existing = self.store.find_one(NOTIFICATIONS, {"dedup_key": dedup_key})
            if existing is None:
                # Constraint hit but the winner has since been deleted
                raise
            logger.debug(f"Notification {dedup_key} already exists")
            return Notification.model_validate(existing), False

        logger.info(f"Notification created: {type} for {recipient.recipient} ({related_id or 'no entity'})")
        return Notification.model_validate(record), True

    async def notify_create(
        self,
        type: NotificationType,
        related_id: Optional[str],
        recipient: RecipientSpec,
        content: NotificationContent,
        related_model: Optional[str] = None
    ) -> Tuple[Notification, bool]:
        """
        Record a creation-event notification once per entity and recipient.

        Returns:
            (notification, created) where created is False when an identical
            notification already existed and was returned instead
        """
        return self._insert_once(type, related_id, recipient, content, related_model, action=None)

    async def notify_state_change(
        self,
        type: NotificationType,
        related_id: str,
        recipient: RecipientSpec,
        action: str,
        content: NotificationContent,
        related_model: Optional[str] = None
    ) -> Tuple[Notification, bool]:
        """Like notify_create, but one notification per distinct `action`."""
        return self._insert_once(type, related_id, recipient, content, related_model, action=action)

    async def list_notifications(
        self,
        recipient: RecipientSpec,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        """Newest first."""
        query = recipient.as_filter()
        if unread_only:
            query["is_read"] = False

        records = self.store.find(NOTIFICATIONS, query, sort=[("created_at", -1)], limit=limit)
        return [Notification.model_validate(r) for r in records]

    async def unread_count(self, recipient: RecipientSpec) -> int:
        return self.store.count_where(NOTIFICATIONS, {**recipient.as_filter(), "is_read": False})

    async def mark_read(self, notification_id: str) -> Notification:
        record = self.store.update_by_id(NOTIFICATIONS, notification_id, {"is_read": True})
        if record is None:
            raise NotFound("Notification", notification_id)
        return Notification.model_validate(record)

    async def mark_all_read(self, recipient: RecipientSpec) -> int:
        """Mark every unread notification of a recipient as read; returns the count."""
        count = self.store.update_where(
            NOTIFICATIONS,
            {**recipient.as_filter(), "is_read": False},
            {"is_read": True}
        )
        logger.info(f"Marked {count} notifications read for {recipient.recipient}")
        return count

    async def delete(self, notification_id: str) -> None:
        if not self.store.delete_by_id(NOTIFICATIONS, notification_id):
            raise NotFound("Notification", notification_id)

    # ------------------------------------------------------------------
    # Domain notices
    # ------------------------------------------------------------------

    async def notify_appointment_received(self, appointment: Appointment) -> List[Notification]:
        """First notice of a new booking to staff and to the customer."""
        when = f"{appointment.appointment_date.isoformat()} at {appointment.appointment_time}"
        notices = [
            (
                RecipientSpec.admin(),
                NotificationContent(
                    title="New Appointment Request",
                    message=f"{appointment.name} booked {appointment.service} on {when}",
                    link="/admin/appointments",
                    metadata={"booked_by": appointment.booked_by},
                ),
            ),
            (
                RecipientSpec.user(appointment.email),
                NotificationContent(
                    title="Appointment Request Received",
                    message=f"Your {appointment.service} appointment on {when} is awaiting confirmation",
                    link="/appointments",
                ),
            ),
        ]

        created = []
        for recipient, content in notices:
            notification, _ = await self.notify_create(
                NotificationType.APPOINTMENT,
                appointment.id,
                recipient,
                content,
                related_model="Appointment",
            )
            created.append(notification)
        return created

    async def notify_appointment_status_changed(self, appointment: Appointment) -> Notification:
        """Tell the customer about a status transition (once per status)."""
        notification, _ = await self.notify_state_change(
            NotificationType.APPOINTMENT,
            appointment.id,
            RecipientSpec.user(appointment.email),
            f"status_update:{appointment.status}",
            NotificationContent(
                title=f"Appointment {appointment.status.capitalize()}",
                message=(
                    f"Your {appointment.service} appointment on "
                    f"{appointment.appointment_date.isoformat()} at {appointment.appointment_time} "
                    f"is now {appointment.status}"
                ),
                link="/appointments",
                metadata={"status": appointment.status},
            ),
            related_model="Appointment",
        )
        return notification

    async def notify_lead_captured(self, lead: Lead) -> Tuple[Notification, bool]:
        """First notice of a new lead to staff; later captures are absorbed."""
        return await self.notify_create(
            NotificationType.LEAD,
            lead.id,
            RecipientSpec.admin(),
            NotificationContent(
                title="New Lead",
                message=f"{lead.name} ({lead.source.replace('_', ' ')}) scored {lead.score}, {lead.priority} priority",
                link="/admin/leads",
                metadata={"score": lead.score, "priority": lead.priority},
            ),
            related_model="Lead",
        )

    async def notify_inquiry_received(
        self,
        channel: NotificationType,
        related_id: str,
        event: CaptureEvent
    ) -> Tuple[Notification, bool]:
        """
        First staff notice for an inbound booking, quote, consultation or
        contact message, linked to the record the website stored for it.

        Raises:
            ValueError: Channel without an inquiry notice
        """
        channel = NotificationType(channel).value
        if channel not in INQUIRY_NOTICES:
            raise ValueError(f"No inquiry notice for channel '{channel}'")

        title, phrase, link, related_model = INQUIRY_NOTICES[channel]
        if channel == NotificationType.CONTACT.value:
            text = f"{event.name} {phrase}"
            if event.message:
                snippet = event.message.strip()
                text += f": {snippet[:50]}{'...' if len(snippet) > 50 else ''}"
        else:
            text = f"{event.name} {phrase} {event.service or 'our services'}"

        metadata = {"customer_name": event.name, "email": event.normalized_email}
        if event.service:
            metadata["service"] = event.service

        return await self.notify_create(
            channel,
            related_id,
            RecipientSpec.admin(),
            NotificationContent(title=title, message=text, link=link, metadata=metadata),
            related_model=related_model,
        )
