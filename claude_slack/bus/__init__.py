"""Message bus module for decoupled channel-agent communication."""

from claude_slack.bus.events import InboundMessage, OutboundMessage
from claude_slack.bus.queue import MessageBus

__all__ = ["MessageBus", "InboundMessage", "OutboundMessage"]
