"""
Messaging Service Abstract Base Class

Defines the interface for sending customer text messages. The gateway
implementation talks to the external messaging API; tests substitute an
in-memory implementation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class NotificationResult:
    """Result from sending a message."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


class BaseMessagingService(ABC):
    """Abstract base class for customer messaging."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def send_text(self, to_phone: str, body: str) -> NotificationResult:
        """
        Send a plain-text message.

        Raises:
            UpstreamNotificationError: the provider did not accept the message
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass

    async def aclose(self) -> None:
        """Release network resources."""
        return None
