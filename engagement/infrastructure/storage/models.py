"""
SQLAlchemy Database Models
Tables backing the record store
"""
from sqlalchemy import Column, String, Integer, Boolean, Date, DateTime, Text, JSON, Index, text
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()

# Active-status predicate for the slot uniqueness index
_ACTIVE_SLOT = text("status IN ('pending', 'confirmed')")


class AppointmentRecord(Base):
    """Appointment model - maps to appointments table"""
    __tablename__ = "appointments"

    id = Column(String(32), primary_key=True)
    name = Column(String(200), nullable=False)
    email = Column(String(320), nullable=False, index=True)
    phone = Column(String(32), default="")
    service = Column(String(200), nullable=False)
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(String(5), nullable=False)
    duration = Column(Integer, nullable=False, default=30)
    meeting_type = Column(String(20), nullable=False, default="online")
    meeting_link = Column(Text, default="")
    message = Column(Text, default="")
    status = Column(String(20), nullable=False, default="pending")
    reminder_sent = Column(Boolean, nullable=False, default=False)
    booked_by = Column(String(20), nullable=False, default="customer")
    admin_notes = Column(Text, default="")
    cancel_reason = Column(Text, default="")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        # At most one pending/confirmed appointment per slot
        Index(
            "uq_appointments_active_slot",
            "appointment_date",
            "appointment_time",
            unique=True,
            sqlite_where=_ACTIVE_SLOT,
            postgresql_where=_ACTIVE_SLOT,
        ),
        Index("ix_appointments_status_created", "status", "created_at"),
    )


class LeadRecord(Base):
    """Lead model - maps to leads table"""
    __tablename__ = "leads"

    id = Column(String(32), primary_key=True)
    email = Column(String(320), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(32), default="")
    source = Column(String(30), nullable=False, default="contact_form")
    status = Column(String(20), nullable=False, default="new")
    score = Column(Integer, nullable=False, default=0, index=True)
    priority = Column(String(10), nullable=False, default="low")
    interested_services = Column(JSON, default=list)
    budget = Column(String(20), nullable=False, default="not-specified")
    activities = Column(JSON, default=list)
    last_contact_date = Column(DateTime)
    next_follow_up_date = Column(DateTime, index=True)
    follow_up_count = Column(Integer, nullable=False, default=0)
    notes = Column(Text, default="")
    tags = Column(JSON, default=list)
    converted_to_customer = Column(Boolean, nullable=False, default=False)
    conversion_date = Column(DateTime)
    scored_at = Column(DateTime)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_leads_priority_status", "priority", "status"),
    )


class NotificationRecord(Base):
    """Notification model - maps to notifications table"""
    __tablename__ = "notifications"

    id = Column(String(32), primary_key=True)
    type = Column(String(20), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    # Weak reference: no foreign key, related rows may be deleted independently
    related_id = Column(String(64))
    related_model = Column(String(50))
    recipient = Column(String(10), nullable=False, default="admin")
    recipient_id = Column(String(64))
    is_read = Column(Boolean, nullable=False, default=False)
    link = Column(Text)
    metadata_ = Column("metadata", JSON, default=dict)
    # NULL for notifications without a related entity (never deduplicated)
    dedup_key = Column(String(400), unique=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_notifications_recipient_read", "recipient", "recipient_id", "is_read", "created_at"),
    )


COLLECTIONS = {
    "appointments": AppointmentRecord,
    "leads": LeadRecord,
    "notifications": NotificationRecord,
}
