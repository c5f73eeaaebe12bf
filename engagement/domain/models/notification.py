"""
Notification Domain Models
In-app notices for staff and customers, deduplicated per entity
"""
from pydantic import BaseModel, Field, model_validator
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum


class NotificationType(str, Enum):
    """Originating domain of a notification"""
    BOOKING = "booking"
    APPOINTMENT = "appointment"
    QUOTE = "quote"
    CONSULTATION = "consultation"
    CONTACT = "contact"
    LEAD = "lead"
    USER = "user"
    SYSTEM = "system"


class RecipientClass(str, Enum):
    """Audience of a notification"""
    ADMIN = "admin"
    USER = "user"


class RecipientSpec(BaseModel):
    """Who a notification is addressed to"""
    recipient: RecipientClass = RecipientClass.ADMIN
    recipient_id: Optional[str] = None

    class Config:
        use_enum_values = True
        validate_default = True
        frozen = True

    @model_validator(mode="after")
    def check_recipient_id(self) -> "RecipientSpec":
        if self.recipient == RecipientClass.USER.value and not self.recipient_id:
            raise ValueError("recipient_id is required for user notifications")
        if self.recipient == RecipientClass.ADMIN.value and self.recipient_id:
            raise ValueError("admin notifications do not carry a recipient_id")
        return self

    @classmethod
    def admin(cls) -> "RecipientSpec":
        return cls(recipient=RecipientClass.ADMIN)

    @classmethod
    def user(cls, recipient_id: str) -> "RecipientSpec":
        return cls(recipient=RecipientClass.USER, recipient_id=recipient_id)

    def as_filter(self) -> Dict[str, Any]:
        """Record-store filter selecting this recipient's notifications"""
        query: Dict[str, Any] = {"recipient": self.recipient}
        if self.recipient_id:
            query["recipient_id"] = self.recipient_id
        return query


class NotificationContent(BaseModel):
    """Human-facing part of a notification"""
    title: str
    message: str
    link: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


def build_dedup_key(
    type: str,
    related_id: Optional[str],
    recipient: str,
    recipient_id: Optional[str],
    action: Optional[str] = None,
) -> Optional[str]:
    """
    Tuple identity of "the same notification", flattened for a unique index.

    Notifications without a related entity are never deduplicated.
    """
    if not related_id:
        return None
    parts = [type, related_id, recipient, recipient_id or "-"]
    if action:
        parts.append(action)
    return "|".join(parts)


class Notification(BaseModel):
    """Stored notification"""
    id: Optional[str] = None
    type: NotificationType
    title: str
    message: str

    # Weak back-reference, no ownership
    related_id: Optional[str] = None
    related_model: Optional[str] = None

    recipient: RecipientClass = RecipientClass.ADMIN
    recipient_id: Optional[str] = None
    is_read: bool = False
    link: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    dedup_key: Optional[str] = None

    created_at: Optional[datetime] = None

    class Config:
        use_enum_values = True
        validate_default = True

    @property
    def action(self) -> Optional[str]:
        return self.metadata.get("action")

    def to_record(self) -> Dict[str, Any]:
        """Fields to persist (identity and timestamps are store-managed)"""
        return self.model_dump(mode="json", exclude={"id", "created_at"})
