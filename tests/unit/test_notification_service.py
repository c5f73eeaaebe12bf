"""
Tests for Notification Service
"""
import pytest
from datetime import date
from pydantic import ValidationError

from engagement.domain.errors import NotFound
from engagement.domain.models.appointment import Appointment
from engagement.domain.models.lead import CaptureEvent, Lead
from engagement.domain.models.notification import (
    NotificationContent,
    NotificationType,
    RecipientSpec,
    build_dedup_key,
)
from engagement.services.notification_service import NOTIFICATIONS


def content(title="New Booking", message="A booking was made"):
    return NotificationContent(title=title, message=message, link="/admin/appointments")


class TestRecipientSpec:
    """Tests for recipient validation"""

    def test_admin(self):
        spec = RecipientSpec.admin()
        assert spec.recipient == "admin"
        assert spec.as_filter() == {"recipient": "admin"}

    def test_user_requires_id(self):
        with pytest.raises(ValidationError):
            RecipientSpec(recipient="user")

    def test_admin_rejects_id(self):
        with pytest.raises(ValidationError):
            RecipientSpec(recipient="admin", recipient_id="u-1")

    def test_user_filter(self):
        assert RecipientSpec.user("u-1").as_filter() == {"recipient": "user", "recipient_id": "u-1"}


class TestDedupKey:
    """Tests for dedup key construction"""

    def test_without_related_entity(self):
        assert build_dedup_key("system", None, "admin", None) is None

    def test_action_extends_key(self):
        base = build_dedup_key("appointment", "a1", "user", "u-1")
        with_action = build_dedup_key("appointment", "a1", "user", "u-1", "status_update:confirmed")

        assert with_action.startswith(base)
        assert with_action != base


class TestNotifyCreate:
    """Tests for creation-event notifications"""

    @pytest.mark.asyncio
    async def test_duplicate_returns_existing(self, notification_service, store):
        first, created_first = await notification_service.notify_create(
            NotificationType.BOOKING, "booking-1", RecipientSpec.admin(), content()
        )
        second, created_second = await notification_service.notify_create(
            NotificationType.BOOKING, "booking-1", RecipientSpec.admin(), content(title="Changed title")
        )

        assert created_first is True
        assert created_second is False
        assert second.id == first.id
        assert second.title == "New Booking"
        assert store.count_where(NOTIFICATIONS) == 1

    @pytest.mark.asyncio
    async def test_distinct_recipients_not_deduplicated(self, notification_service, store):
        await notification_service.notify_create(NotificationType.BOOKING, "booking-1", RecipientSpec.admin(), content())
        await notification_service.notify_create(NotificationType.BOOKING, "booking-1", RecipientSpec.user("u-1"), content())
        await notification_service.notify_create(NotificationType.BOOKING, "booking-1", RecipientSpec.user("u-2"), content())

        assert store.count_where(NOTIFICATIONS) == 3

    @pytest.mark.asyncio
    async def test_no_related_entity_never_deduplicated(self, notification_service, store):
        await notification_service.notify_create(NotificationType.SYSTEM, None, RecipientSpec.admin(), content())
        await notification_service.notify_create(NotificationType.SYSTEM, None, RecipientSpec.admin(), content())

        assert store.count_where(NOTIFICATIONS) == 2

    @pytest.mark.asyncio
    async def test_fields_stored(self, notification_service):
        notification, _ = await notification_service.notify_create(
            "quote",
            "quote-9",
            RecipientSpec.admin(),
            NotificationContent(title="Quote", message="New quote", metadata={"amount": "50k"}),
            related_model="Quote",
        )

        assert notification.type == "quote"
        assert notification.related_model == "Quote"
        assert notification.is_read is False
        assert notification.metadata == {"amount": "50k"}
        assert notification.created_at is not None


class TestNotifyStateChange:
    """Tests for state-change notifications"""

    @pytest.mark.asyncio
    async def test_distinct_actions_create_two(self, notification_service, store):
        recipient = RecipientSpec.user("u-1")
        await notification_service.notify_state_change(
            NotificationType.APPOINTMENT, "appt-1", recipient, "status_update:confirmed", content()
        )
        await notification_service.notify_state_change(
            NotificationType.APPOINTMENT, "appt-1", recipient, "status_update:completed", content()
        )

        assert store.count_where(NOTIFICATIONS) == 2

    @pytest.mark.asyncio
    async def test_same_action_deduplicated(self, notification_service, store):
        recipient = RecipientSpec.user("u-1")
        first, _ = await notification_service.notify_state_change(
            NotificationType.APPOINTMENT, "appt-1", recipient, "status_update:confirmed", content()
        )
        second, created = await notification_service.notify_state_change(
            NotificationType.APPOINTMENT, "appt-1", recipient, "status_update:confirmed", content()
        )

        assert created is False
        assert second.id == first.id
        assert first.action == "status_update:confirmed"
        assert store.count_where(NOTIFICATIONS) == 1

    @pytest.mark.asyncio
    async def test_state_change_separate_from_create(self, notification_service, store):
        recipient = RecipientSpec.user("u-1")
        await notification_service.notify_create(NotificationType.APPOINTMENT, "appt-1", recipient, content())
        await notification_service.notify_state_change(
            NotificationType.APPOINTMENT, "appt-1", recipient, "status_update:confirmed", content()
        )

        assert store.count_where(NOTIFICATIONS) == 2


class TestReadState:
    """Tests for listing and read/unread handling"""

    @pytest.mark.asyncio
    async def test_list_newest_first(self, notification_service):
        for i in range(3):
            await notification_service.notify_create(
                NotificationType.CONTACT, f"contact-{i}", RecipientSpec.admin(), content(title=f"Contact {i}")
            )

        notifications = await notification_service.list_notifications(RecipientSpec.admin())

        assert [n.title for n in notifications] == ["Contact 2", "Contact 1", "Contact 0"]

    @pytest.mark.asyncio
    async def test_list_limit(self, notification_service):
        for i in range(5):
            await notification_service.notify_create(
                NotificationType.CONTACT, f"contact-{i}", RecipientSpec.admin(), content()
            )

        assert len(await notification_service.list_notifications(RecipientSpec.admin(), limit=2)) == 2

    @pytest.mark.asyncio
    async def test_recipients_isolated(self, notification_service):
        await notification_service.notify_create(NotificationType.USER, "u-1", RecipientSpec.user("u-1"), content())
        await notification_service.notify_create(NotificationType.USER, "u-2", RecipientSpec.user("u-2"), content())

        assert await notification_service.unread_count(RecipientSpec.user("u-1")) == 1
        assert await notification_service.unread_count(RecipientSpec.admin()) == 0

    @pytest.mark.asyncio
    async def test_mark_read(self, notification_service):
        notification, _ = await notification_service.notify_create(
            NotificationType.CONTACT, "contact-1", RecipientSpec.admin(), content()
        )

        updated = await notification_service.mark_read(notification.id)

        assert updated.is_read is True
        assert await notification_service.unread_count(RecipientSpec.admin()) == 0
        assert await notification_service.list_notifications(RecipientSpec.admin(), unread_only=True) == []

    @pytest.mark.asyncio
    async def test_mark_read_unknown(self, notification_service):
        with pytest.raises(NotFound):
            await notification_service.mark_read("missing-id")

    @pytest.mark.asyncio
    async def test_mark_all_read(self, notification_service):
        for i in range(3):
            await notification_service.notify_create(
                NotificationType.CONTACT, f"contact-{i}", RecipientSpec.admin(), content()
            )
        await notification_service.notify_create(NotificationType.USER, "u-1", RecipientSpec.user("u-1"), content())

        count = await notification_service.mark_all_read(RecipientSpec.admin())

        assert count == 3
        assert await notification_service.unread_count(RecipientSpec.admin()) == 0
        assert await notification_service.unread_count(RecipientSpec.user("u-1")) == 1
        assert await notification_service.mark_all_read(RecipientSpec.admin()) == 0

    @pytest.mark.asyncio
    async def test_delete(self, notification_service):
        notification, _ = await notification_service.notify_create(
            NotificationType.CONTACT, "contact-1", RecipientSpec.admin(), content()
        )

        await notification_service.delete(notification.id)

        with pytest.raises(NotFound):
            await notification_service.delete(notification.id)


class TestDomainNotices:
    """Tests for appointment and lead notices"""

    def _appointment(self):
        return Appointment(
            id="appt-1",
            name="Priya Sharma",
            email="priya@example.com",
            service="ITR Filing",
            appointment_date=date(2025, 3, 10),
            appointment_time="10:00",
        )

    @pytest.mark.asyncio
    async def test_appointment_received_once(self, notification_service, store):
        appointment = self._appointment()

        await notification_service.notify_appointment_received(appointment)
        await notification_service.notify_appointment_received(appointment)

        assert store.count_where(NOTIFICATIONS) == 2
        assert await notification_service.unread_count(RecipientSpec.admin()) == 1
        assert await notification_service.unread_count(RecipientSpec.user("priya@example.com")) == 1

    @pytest.mark.asyncio
    async def test_status_changed_action(self, notification_service):
        appointment = self._appointment()
        appointment.status = "confirmed"

        notification = await notification_service.notify_appointment_status_changed(appointment)

        assert notification.metadata["action"] == "status_update:confirmed"
        assert notification.title == "Appointment Confirmed"

    @pytest.mark.asyncio
    async def test_lead_captured_first_notice_only(self, notification_service):
        lead = Lead(id="lead-1", email="a@example.com", name="Anita", source="quote_request", score=35, priority="medium")

        _, created_first = await notification_service.notify_lead_captured(lead)
        _, created_second = await notification_service.notify_lead_captured(lead)

        assert created_first is True
        assert created_second is False

    @pytest.mark.asyncio
    async def test_notifications_survive_entity_deletion(self, notification_service, booking_service, contact):
        appointment = await booking_service.reserve(date(2025, 3, 10), "10:00", contact, "ITR Filing")
        await notification_service.notify_appointment_received(appointment)

        await booking_service.delete(appointment.id)

        notifications = await notification_service.list_notifications(RecipientSpec.admin())
        assert notifications[0].related_id == appointment.id


class TestInquiryNotices:
    """Tests for per-channel staff notices"""

    @pytest.mark.asyncio
    async def test_quote_request(self, notification_service):
        event = CaptureEvent(name="Anita", email=" Anita@Example.com ", source="quote_request", service="Audit")

        notification, created = await notification_service.notify_inquiry_received("quote", "quote-7", event)

        assert created is True
        assert notification.type == "quote"
        assert notification.title == "New Quote Request"
        assert notification.message == "Anita requested a quote for Audit"
        assert notification.link == "/admin/quotes"
        assert notification.related_model == "Quote"
        assert notification.recipient == "admin"
        assert notification.metadata["email"] == "anita@example.com"

    @pytest.mark.asyncio
    async def test_consultation(self, notification_service):
        event = CaptureEvent(name="Ravi", email="ravi@example.com", service="GST Registration")

        notification, _ = await notification_service.notify_inquiry_received("consultation", "c-1", event)

        assert notification.title == "New Consultation Request"
        assert notification.message == "Ravi requested consultation for GST Registration"

    @pytest.mark.asyncio
    async def test_contact_message_snippet(self, notification_service):
        event = CaptureEvent(name="Meera", email="meera@example.com", message="x" * 80)

        notification, _ = await notification_service.notify_inquiry_received("contact", "msg-1", event)

        assert notification.title == "New Contact Message"
        assert notification.message == "Meera sent a message: " + "x" * 50 + "..."

    @pytest.mark.asyncio
    async def test_deduplicated_per_inquiry(self, notification_service):
        event = CaptureEvent(name="Anita", email="anita@example.com", source="booking", service="Audit")

        await notification_service.notify_inquiry_received("booking", "b-1", event)
        _, created = await notification_service.notify_inquiry_received("booking", "b-1", event)

        assert created is False
        assert await notification_service.unread_count(RecipientSpec.admin()) == 1

    @pytest.mark.asyncio
    async def test_channel_without_notice(self, notification_service):
        event = CaptureEvent(name="Anita", email="anita@example.com")

        with pytest.raises(ValueError):
            await notification_service.notify_inquiry_received("system", "x-1", event)
