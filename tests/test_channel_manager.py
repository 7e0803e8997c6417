import asyncio

import pytest

from claude_slack.bus.events import OutboundMessage
from claude_slack.bus.queue import MessageBus
from claude_slack.channels.base import BaseChannel
from claude_slack.channels.manager import ChannelManager
from claude_slack.channels.slack import SlackChannel
from claude_slack.config.schema import Config


class RecordingChannel(BaseChannel):
    name = "slack"

    def __init__(self, bus, fail_on=None):
        super().__init__(config=None, bus=bus)
        self.sent = []
        self.fail_on = fail_on

    async def start(self):
        self._running = True

    async def stop(self):
        self._running = False

    async def send(self, msg):
        if msg.content == self.fail_on:
            raise RuntimeError("slack is down")
        self.sent.append((msg.content, msg.thread_id))


def _disabled_config():
    config = Config()
    config.channels.slack.enabled = False
    return config


def test_slack_channel_is_created_when_enabled():
    manager = ChannelManager(Config(), MessageBus())

    assert manager.enabled_channels == ["slack"]
    assert isinstance(manager.channels["slack"], SlackChannel)


@pytest.mark.asyncio
async def test_no_channels_when_slack_disabled():
    manager = ChannelManager(_disabled_config(), MessageBus())

    await manager.start_all()

    assert manager.enabled_channels == []


@pytest.mark.asyncio
async def test_progress_notice_and_reply_arrive_in_order_despite_send_errors():
    bus = MessageBus()
    manager = ChannelManager(_disabled_config(), bus)
    channel = RecordingChannel(bus, fail_on="boom")
    manager.channels["slack"] = channel

    await manager.start_all()
    assert channel.is_running

    await bus.publish_outbound(
        OutboundMessage(
            channel="slack", chat_id="C1", content="Processing your request...", thread_id="1.0",
            metadata={"progress": True},
        )
    )
    await bus.publish_outbound(OutboundMessage(channel="slack", chat_id="C1", content="boom", thread_id="1.0"))
    await bus.publish_outbound(OutboundMessage(channel="discord", chat_id="C1", content="lost"))
    await bus.publish_outbound(OutboundMessage(channel="slack", chat_id="C1", content="answer", thread_id="1.0"))

    for _ in range(50):
        if len(channel.sent) == 2:
            break
        await asyncio.sleep(0.02)

    await manager.stop_all()

    assert channel.sent == [("Processing your request...", "1.0"), ("answer", "1.0")]
    assert not channel.is_running
