"""
SMTP Notifier
Email delivery over SMTP for reminders, confirmations and follow-ups.

Configuration comes from Settings (environment / .env):
    SMTP_HOST: SMTP server hostname (e.g., smtp.gmail.com)
    SMTP_PORT: SMTP port (default: 587 for TLS)
    SMTP_USER: SMTP username/email
    SMTP_PASSWORD: SMTP password or app password
    SMTP_FROM_EMAIL: Default sender email address
    SMTP_FROM_NAME: Default sender display name (optional)
    SMTP_USE_TLS: Use STARTTLS (default: true)
"""
import asyncio
import ssl
import logging
import smtplib
from datetime import datetime
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.utils import formataddr

from engagement.core.config import Settings
from engagement.domain.interfaces.notifier import Notifier, RenderedMessage, DeliveryResult

logger = logging.getLogger(__name__)


class SMTPConfigError(Exception):
    """Raised when SMTP is not properly configured."""
    pass


class SMTPNotifier(Notifier):
    """
    Send-only email notifier.

    The blocking smtplib exchange runs in a worker thread so scans and
    request handlers are not stalled by a slow mail server.
    """

    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_password
        self.from_email = settings.smtp_from_email
        self.from_name = settings.smtp_from_name
        self.use_tls = settings.smtp_use_tls

        if not self.is_configured():
            logger.warning("SMTP not fully configured - email delivery will fail")
        else:
            logger.info(f"Initialized SMTP notifier (host: {self.host})")

    @property
    def provider_name(self) -> str:
        return "smtp"

    def is_configured(self) -> bool:
        """Check if SMTP credentials are configured."""
        return all([self.host, self.user, self.password, self.from_email])

    def _validate_config(self) -> None:
        if not self.is_configured():
            raise SMTPConfigError(
                "SMTP not configured. Required environment variables: "
                "SMTP_HOST, SMTP_USER, SMTP_PASSWORD, SMTP_FROM_EMAIL"
            )

    def _build_message(self, destination: str, message: RenderedMessage):
        if message.body_html:
            mime = MIMEMultipart("alternative")
            mime.attach(MIMEText(message.body, "plain", "utf-8"))
            mime.attach(MIMEText(message.body_html, "html", "utf-8"))
        else:
            mime = MIMEText(message.body, "plain", "utf-8")

        mime["Subject"] = message.subject
        mime["From"] = formataddr((self.from_name, self.from_email))
        mime["To"] = destination
        return mime

    def _deliver(self, destination: str, message: RenderedMessage) -> None:
        mime = self._build_message(destination, message)

        with smtplib.SMTP(self.host, self.port) as server:
            if self.use_tls:
                context = ssl.create_default_context()
                server.ehlo()
                server.starttls(context=context)
                server.ehlo()
            server.login(self.user, self.password)
            server.sendmail(self.from_email, [destination], mime.as_string())

    async def send(self, destination: str, message: RenderedMessage) -> DeliveryResult:
        """Send a rendered message to one email address."""
        try:
            self._validate_config()
            await asyncio.to_thread(self._deliver, destination, message)
        except SMTPConfigError as e:
            return DeliveryResult(success=False, provider=self.provider_name, destination=destination, error=str(e))
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed: {e}")
            return DeliveryResult(
                success=False,
                provider=self.provider_name,
                destination=destination,
                error="Email authentication failed. Please check SMTP credentials."
            )
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP error sending to {destination[:6]}...: {e}")
            return DeliveryResult(success=False, provider=self.provider_name, destination=destination, error=str(e))

        delivery_id = f"smtp-{datetime.utcnow().strftime('%Y%m%d%H%M%S%f')}"
        logger.info(f"Email sent via SMTP to {destination[:6]}...")

        return DeliveryResult(
            success=True,
            delivery_id=delivery_id,
            provider=self.provider_name,
            destination=destination,
            sent_at=datetime.utcnow()
        )
