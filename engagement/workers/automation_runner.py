"""
Automation Runner
Background worker for appointment reminders and lead follow-ups.

Run as separate process:
    python -m engagement.workers.automation_runner

Two scans run on wall-clock cadences:
- Reminders (hourly): appointments starting about 24 hours from now
- Follow-ups (daily): open leads whose next follow-up falls due today
"""
import asyncio
import logging
import signal
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

from engagement.core.config import AutomationPolicy
from engagement.domain.interfaces.notifier import Notifier, RenderedMessage, DeliveryResult
from engagement.domain.services.message_templates import MessageTemplateManager
from engagement.services.booking_service import BookingService
from engagement.services.lead_service import LeadService
from engagement.workers.scheduler import Scheduler, ScheduledTask, HourlyCadence, DailyCadence

logger = logging.getLogger(__name__)

REMINDER_TASK = "appointment_reminders"
FOLLOW_UP_TASK = "lead_follow_ups"


@dataclass
class ScanReport:
    """Outcome of one reminder or follow-up scan."""
    scan: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    candidates: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    stopped: bool = False

    @property
    def attempted(self) -> int:
        return self.sent + self.failed

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "scan": self.scan,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "candidates": self.candidates,
            "attempted": self.attempted,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "stopped": self.stopped
        }


class AutomationRunner:
    """
    Time-triggered engagement actions.

    Responsibilities:
    - Send one reminder per appointment ahead of its start
    - Send priority-specific follow-ups to open leads and reschedule them
    - Pace sends and keep going when individual deliveries fail
    - Stop cleanly between candidates on shutdown

    Both scan bodies can be called directly; the scheduler only times them.
    """

    def __init__(
        self,
        bookings: BookingService,
        leads: LeadService,
        notifier: Notifier,
        templates: MessageTemplateManager,
        policy: Optional[AutomationPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.bookings = bookings
        self.leads = leads
        self.notifier = notifier
        self.templates = templates
        self.policy = policy or AutomationPolicy()
        self._clock = clock or datetime.now
        self._sleep = sleep

        self.running = False
        self._stop_requested = False
        self._scheduler: Optional[Scheduler] = None

        # One scan of each kind at a time
        self._reminder_lock = asyncio.Lock()
        self._follow_up_lock = asyncio.Lock()

        # Stats
        self._reminders_sent = 0
        self._reminders_failed = 0
        self._follow_ups_sent = 0
        self._follow_ups_failed = 0
        self._scans = 0

    def now(self) -> datetime:
        return self._clock()

    async def _deliver(self, destination: str, message: RenderedMessage) -> DeliveryResult:
        """Send through the notifier; transport exceptions become failed results."""
        try:
            return await self.notifier.send(destination, message)
        except Exception as e:
            logger.error(f"Notifier {self.notifier.provider_name} raised for {destination[:6]}...: {e}")
            return DeliveryResult(
                success=False,
                provider=self.notifier.provider_name,
                destination=destination,
                error=str(e)
            )

    async def run_reminder_scan_now(self) -> ScanReport:
        """
        Send reminders for appointments starting one horizon from now.

        Every candidate is flagged reminder_sent after its attempt, whether
        or not delivery succeeded, so no appointment is reminded twice.
        A trigger that arrives while a reminder scan is running waits for it
        and then sees the flags that scan wrote.
        """
        async with self._reminder_lock:
            return await self._reminder_scan()

    async def _reminder_scan(self) -> ScanReport:
        now = self.now()
        horizon = timedelta(hours=self.policy.reminder_horizon_hours)
        tolerance = timedelta(minutes=self.policy.reminder_tolerance_minutes)

        candidates = await self.bookings.due_for_reminder(now + horizon - tolerance, now + horizon + tolerance)
        report = ScanReport(scan="reminders", started_at=now, candidates=len(candidates))
        self._scans += 1

        if candidates:
            logger.info(f"Found {len(candidates)} appointments needing reminders")

        for index, appointment in enumerate(candidates):
            if self._stop_requested:
                report.stopped = True
                break
            if index:
                await self._sleep(self.policy.reminder_send_delay_seconds)

            try:
                message = self.templates.render_appointment_reminder(appointment)
                result = await self._deliver(appointment.email, message)
            except Exception as e:
                logger.error(f"Failed to build reminder for appointment {appointment.id}: {e}", exc_info=True)
                result = DeliveryResult(
                    success=False,
                    provider=self.notifier.provider_name,
                    destination=appointment.email,
                    error=str(e)
                )

            try:
                await self.bookings.mark_reminder_sent(appointment.id)
            except Exception as e:
                logger.error(f"Could not flag reminder for appointment {appointment.id}: {e}", exc_info=True)

            if result.success:
                report.sent += 1
                self._reminders_sent += 1
                logger.info(f"Reminder sent for appointment {appointment.id}")
            else:
                report.failed += 1
                self._reminders_failed += 1
                logger.error(f"Reminder for appointment {appointment.id} failed: {result.error}")

        report.finished_at = self.now()
        logger.info(f"Reminder scan complete: {report.sent} sent, {report.failed} failed")
        return report

    async def run_follow_up_scan_now(self) -> ScanReport:
        """Send follow-ups to leads due today, highest score first."""
        async with self._follow_up_lock:
            return await self._follow_up_scan()

    async def _follow_up_scan(self) -> ScanReport:
        now = self.now()
        candidates = await self.leads.due_for_follow_up(now)
        report = ScanReport(scan="follow_ups", started_at=now, candidates=len(candidates))
        self._scans += 1

        if candidates:
            logger.info(f"Found {len(candidates)} leads needing follow-up")

        for index, lead in enumerate(candidates):
            if self._stop_requested:
                report.stopped = True
                break
            if index:
                await self._sleep(self.policy.follow_up_send_delay_seconds)

            try:
                result = await self._follow_up(lead.id, skip_closed=True)
            except Exception as e:
                report.failed += 1
                self._follow_ups_failed += 1
                logger.error(f"Failed to process follow-up for lead {lead.id}: {e}", exc_info=True)
                continue

            if result is None:
                report.skipped += 1
            elif result.success:
                report.sent += 1
            else:
                report.failed += 1

        report.finished_at = self.now()
        logger.info(
            f"Follow-up scan complete: {report.sent} sent, {report.failed} failed, {report.skipped} skipped"
        )
        return report

    async def _follow_up(self, lead_id: str, skip_closed: bool = False) -> Optional[DeliveryResult]:
        lead = await self.leads.get(lead_id)
        if skip_closed and (lead.is_terminal or lead.converted_to_customer):
            # Closed after the scan picked it up
            logger.info(f"Lead {lead.id} is {lead.status}; follow-up skipped")
            return None

        message = self.templates.render_follow_up(lead)
        result = await self._deliver(lead.email, message)

        updated = await self.leads.record_follow_up(lead.id, delivered=result.success)

        if result.success:
            self._follow_ups_sent += 1
            logger.info(
                f"Follow-up {updated.follow_up_count} sent to lead {lead.id} "
                f"({lead.priority}), next on {updated.next_follow_up_date:%Y-%m-%d}"
            )
        else:
            self._follow_ups_failed += 1
            logger.error(f"Follow-up to lead {lead.id} failed: {result.error}")
        return result

    async def send_follow_up(self, lead_id: str) -> DeliveryResult:
        """
        Send one follow-up now (staff action).

        Raises:
            NotFound: Unknown lead id
        """
        return await self._follow_up(lead_id)

    def build_scheduler(self) -> Scheduler:
        """Scheduler with the reminder and follow-up tasks registered."""
        scheduler = Scheduler(clock=self._clock, sleep=self._sleep)
        scheduler.add(ScheduledTask(
            name=REMINDER_TASK,
            cadence=HourlyCadence(minute=self.policy.reminder_minute),
            body=self.run_reminder_scan_now,
            run_on_startup=self.policy.run_on_startup
        ))
        scheduler.add(ScheduledTask(
            name=FOLLOW_UP_TASK,
            cadence=DailyCadence(hour=self.policy.follow_up_hour, minute=self.policy.follow_up_minute),
            body=self.run_follow_up_scan_now,
            run_on_startup=self.policy.run_on_startup
        ))
        return scheduler

    async def run(self) -> None:
        """Main worker loop: run scans as their cadences come due."""
        self._scheduler = self.build_scheduler()
        self._stop_requested = False
        self.running = True

        logger.info(f"Automation Runner started (notifier: {self.notifier.provider_name})")

        try:
            await self._scheduler.run()
        finally:
            await self.shutdown()

    def stop(self) -> None:
        """Request a stop; in-flight scans end after the current candidate."""
        self._stop_requested = True
        if self._scheduler is not None:
            self._scheduler.stop()

    async def shutdown(self) -> None:
        """Graceful shutdown."""
        if not self.running:
            return
        logger.info("Shutting down Automation Runner...")
        self.running = False

        # Log final stats
        logger.info(
            f"Automation Runner shutdown complete. "
            f"Reminders Sent: {self._reminders_sent}, "
            f"Follow-ups Sent: {self._follow_ups_sent}, "
            f"Failed: {self._reminders_failed + self._follow_ups_failed}"
        )

    def get_stats(self) -> dict:
        """Get worker statistics."""
        return {
            "running": self.running,
            "scans": self._scans,
            "reminders_sent": self._reminders_sent,
            "reminders_failed": self._reminders_failed,
            "follow_ups_sent": self._follow_ups_sent,
            "follow_ups_failed": self._follow_ups_failed
        }


async def main():
    """Entry point for running the automation runner as separate process."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Lazy import to avoid circular deps
    from engagement.services.engagement_service import build_engagement_service

    runner = build_engagement_service().runner

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        runner.stop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        await runner.run()
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    finally:
        await runner.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
