"""
Lead Scoring
Deterministic weighted score and priority tier for a lead.

The score depends only on stored fields: the recency bonus is measured
against `scored_at`, the time of the last mutation, so reloading a lead and
rescoring it always reproduces the stored value.
"""
from datetime import datetime, timedelta
from typing import Optional

from engagement.domain.models.lead import Lead, LeadPriority

SOURCE_WEIGHTS = {
    "appointment": 30,
    "quote_request": 25,
    "booking": 25,
    "contact_form": 15,
    "chatbot": 10,
    "newsletter": 5,
    "manual": 0,
}

ACTIVITY_WEIGHTS = {
    "appointment_book": 20,
    "quote_request": 15,
    "form_submit": 10,
    "email_click": 5,
    "email_open": 3,
    "page_visit": 1,
}

BUDGET_WEIGHTS = {
    "above-5lakh": 20,
    "1lakh-5lakh": 15,
    "50k-1lakh": 10,
    "10k-50k": 5,
    "under-10k": 2,
    "not-specified": 0,
}

RECENCY_BONUS = 10
PER_SERVICE_BONUS = 3
MAX_SCORE = 100

# (minimum score, tier), highest first
PRIORITY_THRESHOLDS = [
    (70, LeadPriority.URGENT),
    (50, LeadPriority.HIGH),
    (30, LeadPriority.MEDIUM),
]


def calculate_score(
    lead: Lead,
    as_of: Optional[datetime] = None,
    recency_window_days: int = 7
) -> int:
    """
    Weighted sum of source, activity, budget, recency and breadth of
    interest, capped at 100.

    Args:
        lead: Lead to score
        as_of: Reference time for the recency bonus (defaults to lead.scored_at)
        recency_window_days: Trailing window that earns the recency bonus
    """
    score = SOURCE_WEIGHTS.get(lead.source, 0)

    for activity in lead.activities:
        score += ACTIVITY_WEIGHTS.get(activity.type, 0)

    score += BUDGET_WEIGHTS.get(lead.budget, 0)

    reference = as_of or lead.scored_at
    if lead.last_contact_date and reference:
        if reference - lead.last_contact_date <= timedelta(days=recency_window_days):
            score += RECENCY_BONUS

    service_count = len(lead.interested_services)
    if service_count > 1:
        score += service_count * PER_SERVICE_BONUS

    return min(score, MAX_SCORE)


def priority_for_score(score: int) -> str:
    """Map a score to its priority tier."""
    for threshold, tier in PRIORITY_THRESHOLDS:
        if score >= threshold:
            return tier.value
    return LeadPriority.LOW.value


def apply_score(lead: Lead, now: datetime, recency_window_days: int = 7) -> Lead:
    """Recompute score and priority in place against `now`."""
    lead.scored_at = now
    lead.score = calculate_score(lead, now, recency_window_days)
    lead.priority = priority_for_score(lead.score)
    return lead
