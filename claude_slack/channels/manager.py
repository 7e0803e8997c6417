"""Channel manager: runs the Slack channel and delivers agent output to it."""

from __future__ import annotations

import asyncio

from loguru import logger

from claude_slack.bus.events import OutboundMessage
from claude_slack.bus.queue import MessageBus
from claude_slack.channels.base import BaseChannel
from claude_slack.channels.slack import SlackChannel
from claude_slack.config.schema import Config


class ChannelManager:
    """
    Owns the chat channels of one agent process.

    Outbound messages are delivered by a single dispatcher, one at a time, so
    a "Processing your request..." notice always lands in its thread before
    the reply that follows it.
    """

    def __init__(self, config: Config, bus: MessageBus):
        self.config = config
        self.bus = bus
        self.channels: dict[str, BaseChannel] = {}
        self._dispatch_task: asyncio.Task[None] | None = None

        if config.channels.slack.enabled:
            self.channels[SlackChannel.name] = SlackChannel(config.channels.slack, bus)
            logger.info("Slack channel enabled")

    @property
    def enabled_channels(self) -> list[str]:
        return list(self.channels)

    async def start_all(self) -> None:
        """Start the dispatcher and every channel; returns when they stop."""
        if not self.channels:
            logger.warning("No channels enabled")
            return

        self._dispatch_task = asyncio.create_task(self._dispatch_outbound())
        await asyncio.gather(
            *(self._start_channel(name, channel) for name, channel in self.channels.items())
        )

    async def _start_channel(self, name: str, channel: BaseChannel) -> None:
        logger.info(f"Starting {name} channel...")
        try:
            await channel.start()
        except Exception as e:
            logger.error(f"Failed to start channel {name}: {e}")

    async def stop_all(self) -> None:
        logger.info("Stopping all channels...")
        if self._dispatch_task:
            self._dispatch_task.cancel()
            try:
                await self._dispatch_task
            except asyncio.CancelledError:
                pass
            self._dispatch_task = None

        for name, channel in self.channels.items():
            try:
                await channel.stop()
                logger.info(f"Stopped {name} channel")
            except Exception as e:
                logger.error(f"Error stopping {name}: {e}")

    async def _dispatch_outbound(self) -> None:
        logger.info("Outbound dispatcher started")
        while True:
            msg = await self.bus.consume_outbound()
            await self._deliver(msg)

    async def _deliver(self, msg: OutboundMessage) -> None:
        channel = self.channels.get(msg.channel)
        if channel is None:
            logger.warning(f"Dropping message for unknown channel {msg.channel}:{msg.chat_id}")
            return

        kind = "progress notice" if msg.metadata.get("progress") else "reply"
        logger.debug(f"Delivering {kind} to {msg.channel}:{msg.chat_id} (thread {msg.thread_id})")
        try:
            await channel.send(msg)
        except Exception as e:
            logger.error(f"Error sending {kind} to {msg.channel}:{msg.chat_id}: {e}")
