"""Chat channels module with plugin architecture."""

from claude_slack.channels.base import BaseChannel
from claude_slack.channels.manager import ChannelManager

__all__ = ["BaseChannel", "ChannelManager"]
