"""
Lead Service
Captures inbound interest into one lead per email and keeps it scored.

Every mutation goes through a compare-and-swap on the lead's `version`, so
two requests merging into the same lead never overwrite each other.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from engagement.core.config import LeadPolicy
from engagement.domain.errors import NotFound
from engagement.domain.interfaces.record_store import RecordStore, DuplicateKeyError, StorageError
from engagement.domain.models.lead import (
    ActivityType,
    CaptureEvent,
    FOLLOW_UP_STATUSES,
    Lead,
    LeadActivity,
    Budget,
    LeadPriority,
    LeadSource,
    LeadStatus,
)
from engagement.domain.services.lead_scoring import apply_score

logger = logging.getLogger(__name__)

LEADS = "leads"


class LeadStats(BaseModel):
    """Pipeline summary for the staff dashboard"""
    total: int = 0
    new: int = 0
    qualified: int = 0
    converted: int = 0
    conversion_rate: float = 0.0
    average_score: float = 0.0
    by_priority: Dict[str, int] = {}
    by_source: Dict[str, int] = {}


class LeadService:
    """
    Lead capture, enrichment and admin updates.

    Score and priority are recomputed on every write; callers never set
    them directly.
    """

    MAX_WRITE_ATTEMPTS = 5

    def __init__(
        self,
        store: RecordStore,
        policy: Optional[LeadPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.store = store
        self.policy = policy or LeadPolicy()
        self._clock = clock or datetime.now

    def now(self) -> datetime:
        return self._clock()

    def follow_up_interval(self, priority: str) -> timedelta:
        """Gap before the next follow-up for a priority tier."""
        days = self.policy.follow_up_days.get(priority)
        if days is None:
            days = self.policy.follow_up_days.get(LeadPriority.LOW.value, 14)
        return timedelta(days=days)

    def _score(self, lead: Lead, now: datetime) -> Lead:
        return apply_score(lead, now, self.policy.recency_window_days)

    def _save(self, lead: Lead, now: datetime) -> Optional[Lead]:
        """Rescore and write back; None if someone else wrote first."""
        expected_version = lead.version
        self._score(lead, now)
        lead.version = expected_version + 1

        record = self.store.update_by_id(
            LEADS,
            lead.id,
            lead.to_record(),
            expected={"version": expected_version}
        )
        return Lead.model_validate(record) if record is not None else None

    def _mutate(self, lead_id: str, change: Callable[[Lead, datetime], None]) -> Lead:
        """
        Apply `change` to the freshest copy of a lead and persist it.

        Raises:
            NotFound: Unknown lead id
            StorageError: Lead kept changing underneath every attempt
        """
        for attempt in range(self.MAX_WRITE_ATTEMPTS):
            record = self.store.find_one(LEADS, {"id": lead_id})
            if record is None:
                raise NotFound("Lead", lead_id)

            now = self.now()
            lead = Lead.model_validate(record)
            change(lead, now)
            saved = self._save(lead, now)
            if saved is not None:
                return saved
            logger.debug(f"Lead {lead_id} version moved, retrying ({attempt + 1})")

        raise StorageError(f"Lead {lead_id} is being modified concurrently; gave up")

    @staticmethod
    def _capture_activity(event: CaptureEvent, now: datetime) -> LeadActivity:
        source = LeadSource(event.source).value
        metadata = {"source": source}
        if event.service:
            metadata["service"] = event.service.strip()
        if event.message:
            metadata["message"] = event.message.strip()
        return LeadActivity(
            type=ActivityType.FORM_SUBMIT,
            description=f"Submitted {source.replace('_', ' ')}",
            timestamp=now,
            metadata=metadata,
        )

    def _new_lead(self, event: CaptureEvent, now: datetime) -> Lead:
        lead = Lead(
            email=event.normalized_email,
            name=event.name.strip(),
            phone="".join(ch for ch in (event.phone or "") if ch.isdigit()),
            source=event.source,
            status=LeadStatus.NEW,
            activities=[self._capture_activity(event, now)],
        )
        lead.add_service(event.service.strip() if event.service else None)
        lead.raise_budget(event.budget)
        self._score(lead, now)
        lead.next_follow_up_date = now + self.follow_up_interval(lead.priority)
        return lead

    def _merge(self, lead: Lead, event: CaptureEvent, now: datetime) -> None:
        lead.activities.append(self._capture_activity(event, now))
        lead.add_service(event.service.strip() if event.service else None)
        lead.raise_budget(event.budget)
        if not lead.phone and event.phone:
            lead.phone = "".join(ch for ch in event.phone if ch.isdigit())

    async def capture(self, event: CaptureEvent) -> Lead:
        """
        Create or enrich the lead for an inbound event.

        A new email creates a lead with one form_submit activity; a known
        email appends the activity, unions the service, raises the budget
        if higher and fills a missing phone.

        Returns:
            The stored, rescored lead
        """
        email = event.normalized_email

        for attempt in range(self.MAX_WRITE_ATTEMPTS):
            record = self.store.find_one(LEADS, {"email": email})
            now = self.now()

            if record is None:
                lead = self._new_lead(event, now)
                try:
                    created = Lead.model_validate(self.store.insert(LEADS, lead.to_record()))
                except DuplicateKeyError:
                    # Lost the create race; merge into the winner
                    logger.debug(f"Concurrent capture for lead {email[:3]}***, merging")
                    continue
                logger.info(f"New lead {created.id} from {created.source} (score {created.score})")
                return created

            lead = Lead.model_validate(record)
            self._merge(lead, event, now)
            saved = self._save(lead, now)
            if saved is not None:
                logger.info(f"Lead {saved.id} updated from {event.source} (score {saved.score})")
                return saved

        raise StorageError(f"Lead capture kept conflicting for {email[:3]}***; gave up")

    async def track_activity(
        self,
        email: str,
        activity_type: ActivityType,
        description: str = "",
        metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[Lead]:
        """Append an activity to a known lead and rescore; None for unknown emails."""
        record = self.store.find_one(LEADS, {"email": email.strip().lower()})
        if record is None:
            return None

        def change(lead: Lead, now: datetime) -> None:
            lead.activities.append(LeadActivity(
                type=activity_type,
                description=description,
                timestamp=now,
                metadata=metadata or {},
            ))

        return self._mutate(record["id"], change)

    async def update_lead(
        self,
        lead_id: str,
        status: Optional[LeadStatus] = None,
        budget: Optional[str] = None,
        notes: Optional[str] = None,
        interested_services: Optional[List[str]] = None,
        tags: Optional[List[str]] = None
    ) -> Lead:
        """
        Staff update of pipeline fields.

        Moving to `won` marks the lead converted; conversion is never undone.
        """
        def change(lead: Lead, now: datetime) -> None:
            if status is not None:
                lead.status = LeadStatus(status).value
                if lead.status == LeadStatus.WON.value and not lead.converted_to_customer:
                    lead.converted_to_customer = True
                    lead.conversion_date = now
            if budget is not None:
                lead.budget = Budget(budget).value
            if notes is not None:
                lead.notes = notes
            if interested_services is not None:
                lead.interested_services = []
                for service in interested_services:
                    lead.add_service(service)
            if tags is not None:
                lead.tags = list(dict.fromkeys(tags))

        return self._mutate(lead_id, change)

    async def record_follow_up(self, lead_id: str, delivered: bool) -> Lead:
        """
        Book-keeping after a follow-up attempt.

        The next date uses the tier the lead had when the message went out.
        """
        def change(lead: Lead, now: datetime) -> None:
            interval = self.follow_up_interval(lead.priority)
            lead.follow_up_count += 1
            if delivered:
                lead.last_contact_date = now
            lead.next_follow_up_date = now + interval

        return self._mutate(lead_id, change)

    async def due_for_follow_up(self, as_of: Optional[datetime] = None) -> List[Lead]:
        """Open leads whose follow-up falls on or before `as_of`'s date, best first."""
        as_of = as_of or self.now()
        end_of_day = datetime.combine(as_of.date() + timedelta(days=1), datetime.min.time())

        records = self.store.find(
            LEADS,
            {
                "next_follow_up_date": {"$lt": end_of_day},
                "status": {"$in": FOLLOW_UP_STATUSES},
                "converted_to_customer": False,
                "follow_up_count": {"$lt": self.policy.max_follow_ups},
            },
            sort=[("score", -1), ("created_at", 1)]
        )
        return [Lead.model_validate(r) for r in records]

    async def get(self, lead_id: str) -> Lead:
        record = self.store.find_one(LEADS, {"id": lead_id})
        if record is None:
            raise NotFound("Lead", lead_id)
        return Lead.model_validate(record)

    async def get_by_email(self, email: str) -> Optional[Lead]:
        record = self.store.find_one(LEADS, {"email": email.strip().lower()})
        return Lead.model_validate(record) if record is not None else None

    async def list_leads(
        self,
        status: Optional[LeadStatus] = None,
        priority: Optional[LeadPriority] = None,
        source: Optional[LeadSource] = None,
        limit: Optional[int] = None
    ) -> List[Lead]:
        """Leads matching the filters, highest score first."""
        query = {}
        if status:
            query["status"] = LeadStatus(status).value
        if priority:
            query["priority"] = LeadPriority(priority).value
        if source:
            query["source"] = LeadSource(source).value

        records = self.store.find(LEADS, query, sort=[("score", -1), ("created_at", -1)], limit=limit)
        return [Lead.model_validate(r) for r in records]

    async def delete(self, lead_id: str) -> None:
        if not self.store.delete_by_id(LEADS, lead_id):
            raise NotFound("Lead", lead_id)
        logger.info(f"Lead {lead_id} deleted")

    async def stats(self) -> LeadStats:
        """Totals, conversion rate and breakdowns across all leads."""
        records = self.store.find(LEADS)
        total = len(records)
        if total == 0:
            return LeadStats()

        by_priority = {p.value: 0 for p in LeadPriority}
        by_source: Dict[str, int] = {}
        for record in records:
            by_priority[record["priority"]] = by_priority.get(record["priority"], 0) + 1
            by_source[record["source"]] = by_source.get(record["source"], 0) + 1

        converted = sum(1 for r in records if r["converted_to_customer"])
        return LeadStats(
            total=total,
            new=sum(1 for r in records if r["status"] == LeadStatus.NEW.value),
            qualified=sum(1 for r in records if r["status"] == LeadStatus.QUALIFIED.value),
            converted=converted,
            conversion_rate=round(converted / total * 100, 2),
            average_score=round(sum(r["score"] for r in records) / total, 2),
            by_priority=by_priority,
            by_source=by_source,
        )
