"""
Shared fixtures: in-memory SQLite store, frozen business clock and a
notifier that records what it was asked to send.
"""
from datetime import datetime, timedelta
from typing import Iterable, Optional
from unittest.mock import AsyncMock

import pytest

from engagement.core.config import AutomationPolicy
from engagement.domain.interfaces.notifier import Notifier, RenderedMessage, DeliveryResult
from engagement.domain.models.appointment import ContactInfo
from engagement.domain.models.business_hours import BusinessHours
from engagement.domain.services.availability_engine import AvailabilityEngine
from engagement.domain.services.message_templates import MessageTemplateManager
from engagement.infrastructure.storage import SQLRecordStore
from engagement.services.booking_service import BookingService
from engagement.services.lead_service import LeadService
from engagement.services.notification_service import NotificationService
from engagement.workers.automation_runner import AutomationRunner


# Friday 2025-03-07, 09:00 business-local time
FRIDAY_MORNING = datetime(2025, 3, 7, 9, 0)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, moment: datetime):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def set(self, moment: datetime) -> None:
        self.moment = moment

    def advance(self, **kwargs) -> None:
        self.moment += timedelta(**kwargs)


class RecordingNotifier(Notifier):
    """Notifier double; destinations in `fail_for` get a failed result."""

    def __init__(self, fail_for: Optional[Iterable[str]] = None):
        self.sent = []
        self.fail_for = set(fail_for or [])

    @property
    def provider_name(self) -> str:
        return "recording"

    async def send(self, destination: str, message: RenderedMessage) -> DeliveryResult:
        self.sent.append((destination, message))
        if destination in self.fail_for:
            return DeliveryResult(
                success=False,
                provider=self.provider_name,
                destination=destination,
                error="mailbox unavailable"
            )
        return DeliveryResult(
            success=True,
            delivery_id=f"rec-{len(self.sent)}",
            provider=self.provider_name,
            destination=destination,
            sent_at=datetime.utcnow()
        )

    @property
    def destinations(self):
        return [destination for destination, _ in self.sent]


@pytest.fixture
def clock():
    return FrozenClock(FRIDAY_MORNING)


@pytest.fixture
def store():
    return SQLRecordStore.from_url("sqlite:///:memory:")


@pytest.fixture
def business_hours():
    return BusinessHours(timezone="Asia/Kolkata")


@pytest.fixture
def availability(store, business_hours, clock):
    return AvailabilityEngine(store, business_hours, clock=clock)


@pytest.fixture
def booking_service(store, availability):
    return BookingService(store, availability)


@pytest.fixture
def lead_service(store, clock):
    return LeadService(store, clock=clock)


@pytest.fixture
def notification_service(store):
    return NotificationService(store)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def templates():
    return MessageTemplateManager(site_context={
        "site_name": "Acme Advisors",
        "frontend_url": "https://acme.example",
        "contact_phone": "+91 98765 43210",
        "contact_email": "hello@acme.example",
    })


@pytest.fixture
def runner(booking_service, lead_service, notifier, templates, clock):
    return AutomationRunner(
        booking_service,
        lead_service,
        notifier,
        templates,
        policy=AutomationPolicy(reminder_send_delay_seconds=0, follow_up_send_delay_seconds=0),
        clock=clock,
        sleep=AsyncMock()
    )


@pytest.fixture
def contact():
    return ContactInfo(name=" Priya Sharma ", email=" Priya.Sharma@Example.COM ", phone="+91 98765-43210")
