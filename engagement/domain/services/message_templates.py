"""
Message Template Manager
Jinja2 templates for appointment reminders, booking confirmations and
priority-specific lead follow-ups.
"""
from typing import Dict, List, Optional, Any
from pydantic import BaseModel, Field
from jinja2 import Environment, BaseLoader, StrictUndefined
import logging

from engagement.domain.interfaces.notifier import RenderedMessage
from engagement.domain.models.appointment import Appointment
from engagement.domain.models.business_hours import DAY_NAMES
from engagement.domain.models.lead import Lead, LeadPriority

logger = logging.getLogger(__name__)


class MessageTemplate(BaseModel):
    """Single message template definition."""
    name: str = Field(..., description="Template identifier")
    subject_template: str = Field(..., description="Jinja2 subject template")
    body_template: str = Field(..., description="Jinja2 plain text body template")
    body_html_template: Optional[str] = Field(None, description="Jinja2 HTML body template")
    variables: List[str] = Field(default_factory=list, description="Required variables")
    description: str = Field("", description="Template purpose description")


MEETING_TYPE_LABELS = {
    "online": "Online Meeting",
    "phone": "Phone Call",
    "in-person": "In-Person",
}


_HTML_WRAPPER_OPEN = """<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
"""

_HTML_WRAPPER_CLOSE = """
<p style="font-size: 12px; color: #666;">{{ site_name | e }}{% if contact_phone %} | {{ contact_phone | e }}{% endif %}{% if contact_email %} | {{ contact_email | e }}{% endif %}</p>
</body>
</html>"""


def _html(content: str) -> str:
    return _HTML_WRAPPER_OPEN + content + _HTML_WRAPPER_CLOSE


_FOLLOW_UP_TEXT = {
    LeadPriority.URGENT.value: (
        "Exclusive offer: let's get started today",
        """Thank you for your interest in {{ services_text }}.

As a valued potential client, we'd like to offer you a complimentary
30-minute consultation to discuss your specific needs.

Book your free consultation: {{ frontend_url }}/appointment
{% if contact_phone %}Or call us directly: {{ contact_phone }}{% endif %}""",
    ),
    LeadPriority.HIGH.value: (
        "Ready to help with your {{ primary_service }} needs",
        """We received your inquiry about {{ services_text }} and would love to help.

Next steps:
1. Schedule a free consultation: {{ frontend_url }}/appointment
2. Get a custom quote: {{ frontend_url }}/quote
{% if contact_phone %}3. Call us: {{ contact_phone }}{% endif %}""",
    ),
    LeadPriority.MEDIUM.value: (
        "Your success starts here",
        """Thank you for reaching out to {{ site_name }}.

We understand that managing {{ services_text }} can be complex. That's why we're here to help.

Explore our services: {{ frontend_url }}/services
Have questions? Reply to this email{% if contact_phone %} or call {{ contact_phone }}{% endif %}.""",
    ),
    LeadPriority.LOW.value: (
        "Stay updated with {{ site_name }}",
        """Thanks for your interest in {{ site_name }}.

We're here whenever you need us. When you're ready, we're just a call away{% if contact_phone %}: {{ contact_phone }}{% endif %}.""",
    ),
}


class MessageTemplateManager:
    """
    Manages outbound message templates and rendering.

    Site details (name, URLs, contact lines) are injected into every render.
    """

    def __init__(self, site_context: Optional[Dict[str, Any]] = None):
        self.templates: Dict[str, MessageTemplate] = {}
        self.env = Environment(loader=BaseLoader(), undefined=StrictUndefined)
        self.site_context: Dict[str, Any] = {
            "site_name": "Our Team",
            "frontend_url": "",
            "contact_phone": "",
            "contact_email": "",
        }
        if site_context:
            self.site_context.update(site_context)
        self._load_default_templates()

    def _load_default_templates(self) -> None:
        """Load default templates."""
        self.templates["appointment_reminder"] = MessageTemplate(
            name="appointment_reminder",
            description="Sent about 24 hours before an appointment",
            subject_template="Reminder: your appointment tomorrow at {{ time }}",
            body_template="""Hi {{ name }},

This is a friendly reminder about your upcoming appointment:

Service: {{ service }}
Date: {{ date_text }}
Time: {{ time }}
Type: {{ meeting_type_label }}
{% if meeting_link %}Join: {{ meeting_link }}
{% endif %}
Need to reschedule? Please contact us at least 4 hours before your appointment.

{{ site_name }}""",
            body_html_template=_html("""<p>Hi {{ name | e }},</p>
<p>This is a friendly reminder about your upcoming appointment:</p>
<div style="background: #f5f5f5; padding: 16px; border-radius: 8px; margin: 16px 0;">
<p style="margin: 4px 0;"><strong>{{ service | e }}</strong></p>
<p style="margin: 4px 0;">{{ date_text }} at {{ time }}</p>
<p style="margin: 4px 0;">{{ meeting_type_label }}</p>
{% if meeting_link %}<p style="margin: 4px 0;"><a href="{{ meeting_link | e }}">Join Meeting</a></p>{% endif %}
</div>
<p>Need to reschedule? Please contact us at least 4 hours before your appointment.</p>"""),
            variables=["name", "service", "date_text", "time", "meeting_type_label", "meeting_link"]
        )

        self.templates["appointment_confirmation"] = MessageTemplate(
            name="appointment_confirmation",
            description="Sent when an appointment request is received",
            subject_template="Appointment received: {{ service }} on {{ date_text }}",
            body_template="""Hi {{ name }},

We have received your appointment request.

Service: {{ service }}
Date: {{ date_text }}
Time: {{ time }}
Type: {{ meeting_type_label }}

We will confirm shortly. If you need to reschedule or cancel, please contact us.

{{ site_name }}""",
            variables=["name", "service", "date_text", "time", "meeting_type_label"]
        )

        for priority, (subject, body) in _FOLLOW_UP_TEXT.items():
            name = f"follow_up_{priority}"
            self.templates[name] = MessageTemplate(
                name=name,
                description=f"Automated follow-up for {priority}-priority leads",
                subject_template=subject,
                body_template="Dear {{ name }},\n\n" + body + "\n\n{{ site_name }}",
                variables=["name", "services_text", "primary_service"]
            )

        logger.info(f"Loaded {len(self.templates)} default message templates")

    def render(self, template_name: str, **context) -> RenderedMessage:
        """
        Render a template with provided context.

        Raises:
            KeyError: If template not found
        """
        if template_name not in self.templates:
            available = ", ".join(self.templates.keys())
            raise KeyError(f"Template '{template_name}' not found. Available: {available}")

        template = self.templates[template_name]
        merged = {**self.site_context, **context}

        subject = self.env.from_string(template.subject_template).render(**merged)
        body = self.env.from_string(template.body_template).render(**merged)
        body_html = None
        if template.body_html_template:
            body_html = self.env.from_string(template.body_html_template).render(**merged)

        logger.debug(f"Rendered template '{template_name}' with {len(context)} variables")
        return RenderedMessage(subject=subject.strip(), body=body, body_html=body_html)

    def _appointment_context(self, appointment: Appointment) -> Dict[str, Any]:
        day = appointment.appointment_date
        return {
            "name": appointment.name,
            "service": appointment.service,
            "date_text": f"{DAY_NAMES[day.weekday()]}, {day.strftime('%d %B %Y')}",
            "time": appointment.appointment_time,
            "meeting_type_label": MEETING_TYPE_LABELS.get(appointment.meeting_type, appointment.meeting_type),
            "meeting_link": appointment.meeting_link or "",
        }

    def render_appointment_reminder(self, appointment: Appointment) -> RenderedMessage:
        return self.render("appointment_reminder", **self._appointment_context(appointment))

    def render_appointment_confirmation(self, appointment: Appointment) -> RenderedMessage:
        return self.render("appointment_confirmation", **self._appointment_context(appointment))

    def render_follow_up(self, lead: Lead, priority: Optional[str] = None) -> RenderedMessage:
        """Render the follow-up matching a priority tier (defaults to the lead's)."""
        tier = priority or lead.priority
        template_name = f"follow_up_{tier}"
        if template_name not in self.templates:
            template_name = f"follow_up_{LeadPriority.MEDIUM.value}"

        services = lead.interested_services
        return self.render(
            template_name,
            name=lead.name,
            services_text=", ".join(services) if services else "our services",
            primary_service=services[0] if services else "business",
        )

    def list_templates(self) -> List[str]:
        """List all template names."""
        return list(self.templates.keys())
