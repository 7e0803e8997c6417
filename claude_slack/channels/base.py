"""Base channel interface for chat platforms."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from loguru import logger

from claude_slack.bus.events import InboundMessage, OutboundMessage
from claude_slack.bus.queue import MessageBus


class BaseChannel(ABC):
    """
    Abstract base class for chat channel implementations.

    A channel turns platform events into InboundMessages on the bus and
    delivers OutboundMessages back to the platform.
    """

    name: str = "base"

    def __init__(self, config: Any, bus: MessageBus):
        self.config = config
        self.bus = bus
        self._running = False

    @abstractmethod
    async def start(self) -> None:
        """Connect to the platform and listen for messages until stopped."""

    @abstractmethod
    async def stop(self) -> None:
        """Disconnect and release resources."""

    @abstractmethod
    async def send(self, msg: OutboundMessage) -> None:
        """Deliver a message through this channel."""

    def is_allowed(self, sender_id: str) -> bool:
        """Check the sender against the optional allowlist (empty = everyone)."""
        allow_list = getattr(self.config, "allow_from", []) or []
        if not allow_list:
            return True
        return str(sender_id) in allow_list

    async def _handle_message(
        self,
        sender_id: str,
        chat_id: str,
        content: str,
        thread_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Check permissions and forward an incoming message to the bus."""
        if not self.is_allowed(sender_id):
            logger.warning(f"Access denied for sender {sender_id} on channel {self.name}")
            return

        await self.bus.publish_inbound(InboundMessage(
            channel=self.name,
            sender_id=str(sender_id),
            chat_id=str(chat_id),
            content=content,
            thread_id=thread_id,
            metadata=metadata or {},
        ))

    @property
    def is_running(self) -> bool:
        return self._running
