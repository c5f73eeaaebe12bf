"""
Lead Domain Models
Prospective customers keyed by email and scored from their activity
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class LeadSource(str, Enum):
    """Acquisition channel a lead first arrived through"""
    CONTACT_FORM = "contact_form"
    QUOTE_REQUEST = "quote_request"
    BOOKING = "booking"
    APPOINTMENT = "appointment"
    NEWSLETTER = "newsletter"
    CHATBOT = "chatbot"
    MANUAL = "manual"


class LeadStatus(str, Enum):
    """Sales pipeline stage"""
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    WON = "won"
    LOST = "lost"


TERMINAL_STATUSES = [LeadStatus.WON.value, LeadStatus.LOST.value]
FOLLOW_UP_STATUSES = [LeadStatus.NEW.value, LeadStatus.CONTACTED.value]


class LeadPriority(str, Enum):
    """Coarse tier derived from the score"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Budget(str, Enum):
    """Stated budget, declared lowest to highest"""
    NOT_SPECIFIED = "not-specified"
    UNDER_10K = "under-10k"
    FROM_10K_TO_50K = "10k-50k"
    FROM_50K_TO_1LAKH = "50k-1lakh"
    FROM_1LAKH_TO_5LAKH = "1lakh-5lakh"
    ABOVE_5LAKH = "above-5lakh"

    @classmethod
    def rank(cls, value: str) -> int:
        """Position on the ordered budget scale (unknown values rank lowest)."""
        for index, member in enumerate(cls):
            if member.value == value:
                return index
        return 0


class ActivityType(str, Enum):
    """Kinds of engagement recorded on a lead"""
    PAGE_VISIT = "page_visit"
    FORM_SUBMIT = "form_submit"
    EMAIL_OPEN = "email_open"
    EMAIL_CLICK = "email_click"
    APPOINTMENT_BOOK = "appointment_book"
    QUOTE_REQUEST = "quote_request"


class LeadActivity(BaseModel):
    """Single entry in a lead's append-only activity log"""
    type: ActivityType
    description: str = ""
    timestamp: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        use_enum_values = True
        validate_default = True


class CaptureEvent(BaseModel):
    """Inbound capture from any channel (form, quote, booking, chatbot)"""
    name: str
    email: str
    phone: Optional[str] = None
    source: LeadSource = LeadSource.CONTACT_FORM
    service: Optional[str] = None
    budget: Optional[Budget] = None
    message: Optional[str] = None

    class Config:
        use_enum_values = True
        validate_default = True

    @property
    def normalized_email(self) -> str:
        return self.email.strip().lower()


class Lead(BaseModel):
    """Lead record; `score` and `priority` are always derived, never set"""
    id: Optional[str] = None
    email: str
    name: str
    phone: str = ""

    source: LeadSource = LeadSource.CONTACT_FORM
    status: LeadStatus = LeadStatus.NEW
    score: int = Field(default=0, ge=0, le=100)
    priority: LeadPriority = LeadPriority.LOW

    interested_services: List[str] = Field(default_factory=list)
    budget: Budget = Budget.NOT_SPECIFIED
    activities: List[LeadActivity] = Field(default_factory=list)

    last_contact_date: Optional[datetime] = None
    next_follow_up_date: Optional[datetime] = None
    follow_up_count: int = 0

    notes: str = ""
    tags: List[str] = Field(default_factory=list)
    converted_to_customer: bool = False
    conversion_date: Optional[datetime] = None

    # Reference time the stored score was computed against
    scored_at: Optional[datetime] = None
    # Compare-and-swap token for concurrent merges
    version: int = 0

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        use_enum_values = True
        validate_default = True

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def add_service(self, service: Optional[str]) -> None:
        """Set-union a service into interested_services, keeping order."""
        if service and service not in self.interested_services:
            self.interested_services.append(service)

    def raise_budget(self, budget: Optional[str]) -> None:
        """Adopt a budget only if it ranks higher than the current one."""
        if budget and Budget.rank(budget) > Budget.rank(self.budget):
            self.budget = budget

    def to_record(self) -> Dict[str, Any]:
        """Fields to persist (identity and timestamps are store-managed)"""
        data = self.model_dump(exclude={"id", "created_at", "updated_at", "activities"})
        data["activities"] = [a.model_dump(mode="json") for a in self.activities]
        return data
