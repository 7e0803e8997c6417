"""Event types for the message bus."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class InboundMessage:
    """Message received from a chat channel."""

    channel: str  # slack, cli
    sender_id: str  # User identifier
    chat_id: str  # Chat/channel identifier
    content: str  # Message text
    thread_id: str | None = None  # Session thread anchor (Slack thread_ts)
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)  # Channel-specific data

    @property
    def scope_keys(self) -> list[str]:
        """
        Keys of every session scope this message touches, narrowest first.

        Its session thread, the thread its reply lands in, and the sender's
        user/channel scope. A top-level DM is answered in a new thread, so a
        follow-up there must still find state keyed by the original message.
        """
        keys = []
        for thread in (self.thread_id, self.reply_thread):
            key = f"{self.channel}:{self.chat_id}:thread:{thread}"
            if thread and key not in keys:
                keys.append(key)
        keys.append(f"{self.channel}:{self.chat_id}:user:{self.sender_id}")
        return keys

    @property
    def reply_thread(self) -> str | None:
        """Thread the reply should be posted to."""
        return self.metadata.get("reply_thread") or self.thread_id


@dataclass
class OutboundMessage:
    """Message to send to a chat channel."""

    channel: str
    chat_id: str
    content: str
    thread_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
