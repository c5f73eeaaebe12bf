"""
Logging Notifier
Development notifier that records messages in the log instead of sending.
"""
import logging
import uuid
from datetime import datetime

from engagement.domain.interfaces.notifier import Notifier, RenderedMessage, DeliveryResult

logger = logging.getLogger(__name__)


class LoggingNotifier(Notifier):
    """Logs every message and reports success."""

    @property
    def provider_name(self) -> str:
        return "logging"

    async def send(self, destination: str, message: RenderedMessage) -> DeliveryResult:
        logger.info(f"[notifier] to={destination} subject={message.subject!r}")
        logger.debug(message.body)
        return DeliveryResult(
            success=True,
            delivery_id=f"log-{uuid.uuid4().hex[:12]}",
            provider=self.provider_name,
            destination=destination,
            sent_at=datetime.utcnow()
        )
