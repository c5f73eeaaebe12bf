"""
Notifier Interface
Abstract outbound delivery channel (email, SMS) for rendered messages
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from engagement.domain.errors import DeliveryError


@dataclass
class RenderedMessage:
    """A message ready to hand to a transport."""
    subject: str
    body: str
    body_html: Optional[str] = None


@dataclass
class DeliveryResult:
    """Result of a send operation."""
    success: bool
    delivery_id: Optional[str] = None
    provider: str = ""
    destination: str = ""
    error: Optional[str] = None
    sent_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None

    def raise_for_error(self) -> "DeliveryResult":
        """Raise DeliveryError for a failed send, otherwise return self."""
        if not self.success:
            raise DeliveryError(self.error or "Delivery failed", destination=self.destination)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "delivery_id": self.delivery_id,
            "provider": self.provider,
            "destination": self.destination,
            "error": self.error,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "metadata": self.metadata
        }


class Notifier(ABC):
    """
    Abstract base class for outbound notifiers.

    Implementations report transport failures through
    DeliveryResult(success=False) rather than raising.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (e.g., 'smtp', 'logging')."""
        pass

    @abstractmethod
    async def send(self, destination: str, message: RenderedMessage) -> DeliveryResult:
        """
        Deliver a rendered message.

        Args:
            destination: Address understood by the provider (email, phone)
            message: Rendered subject and body

        Returns:
            DeliveryResult with success status and delivery_id
        """
        pass

    def is_configured(self) -> bool:
        """Check if the provider has valid configuration."""
        return True
