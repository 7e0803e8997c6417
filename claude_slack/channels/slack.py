"""Slack channel implementation using slack-bolt in Socket Mode."""

from __future__ import annotations

import asyncio
import re
from typing import Any

from loguru import logger
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.async_app import AsyncApp
from slack_sdk.errors import SlackApiError

from claude_slack.agent.loop import is_session_command
from claude_slack.bus.events import OutboundMessage
from claude_slack.bus.queue import MessageBus
from claude_slack.channels.base import BaseChannel
from claude_slack.config.schema import SlackConfig

SLACK_MAX_MESSAGE_CHARS = 3900

_MENTION_RE = re.compile(r"<@[^>]+>")


def _split_message(content: str, max_len: int = SLACK_MAX_MESSAGE_CHARS) -> list[str]:
    """Split content into chunks within max_len, preferring line breaks."""
    if len(content) <= max_len:
        return [content]
    chunks: list[str] = []
    while content:
        if len(content) <= max_len:
            chunks.append(content)
            break
        cut = content[:max_len]
        pos = cut.rfind("\n")
        if pos <= 0:
            pos = cut.rfind(" ")
        if pos <= 0:
            pos = max_len
        chunks.append(content[:pos])
        content = content[pos:].lstrip()
    return chunks


class SlackChannel(BaseChannel):
    """
    Slack channel over Socket Mode.

    No public endpoint is needed. The bot answers direct messages, mentions,
    `session ...` commands, and follow-ups in threads it has already replied in.
    """

    name = "slack"

    def __init__(self, config: SlackConfig, bus: MessageBus):
        super().__init__(config, bus)
        self.config: SlackConfig = config
        self._app: AsyncApp | None = None
        self._handler: AsyncSocketModeHandler | None = None
        self._active_threads: set[tuple[str, str]] = set()  # (channel, thread_ts) the bot replied in

    async def start(self) -> None:
        """Connect via Socket Mode and keep running until stopped."""
        missing = self.config.missing_credentials()
        if missing:
            logger.error(f"Slack channel not configured: missing {', '.join(missing)}")
            return

        self._running = True
        self._app = AsyncApp(
            token=self.config.bot_token,
            signing_secret=self.config.signing_secret,
        )
        self._app.event("app_mention")(self._on_app_mention)
        self._app.event("message")(self._on_message)

        logger.info("Starting Slack bot (Socket Mode)...")
        self._handler = AsyncSocketModeHandler(self._app, self.config.app_token)
        await self._handler.connect_async()

        try:
            auth = await self._app.client.auth_test()
            logger.info(f"Slack bot @{auth.get('user')} connected")
        except SlackApiError as e:
            logger.warning(f"Slack auth check failed: {e}")

        while self._running:
            await asyncio.sleep(1)

    async def stop(self) -> None:
        """Close the Socket Mode connection."""
        self._running = False
        if self._handler:
            logger.info("Stopping Slack bot...")
            await self._handler.close_async()
            self._handler = None
        self._app = None

    async def send(self, msg: OutboundMessage) -> None:
        """Post a message to the conversation thread it addresses."""
        if not self._app:
            logger.warning("Slack bot not running")
            return

        for chunk in _split_message(msg.content):
            try:
                await self._app.client.chat_postMessage(
                    channel=msg.chat_id,
                    text=chunk,
                    thread_ts=msg.thread_id,
                )
            except SlackApiError as e:
                logger.error(f"Error sending Slack message to {msg.chat_id}: {e}")
                return

        if msg.thread_id and not (msg.metadata or {}).get("progress"):
            self._active_threads.add((msg.chat_id, msg.thread_id))

    def _should_respond(self, event: dict[str, Any]) -> bool:
        """DMs always; channel messages only inside threads the bot is active in."""
        if event.get("channel_type") == "im":
            return True
        thread_ts = event.get("thread_ts")
        return bool(thread_ts) and (event.get("channel"), thread_ts) in self._active_threads

    async def _on_message(self, event: dict[str, Any]) -> None:
        """Handle plain message events."""
        if event.get("bot_id") or event.get("subtype"):
            return
        text = event.get("text") or ""
        if "<@" in text and event.get("channel_type") != "im":
            # Mentions arrive separately as app_mention events.
            return
        if not (is_session_command(text) or self._should_respond(event)):
            return
        await self._forward(event, text.strip())

    async def _on_app_mention(self, event: dict[str, Any]) -> None:
        """Handle @-mentions of the bot."""
        if event.get("bot_id"):
            return
        text = _MENTION_RE.sub("", event.get("text") or "", count=1).strip()
        await self._forward(event, text)

    async def _forward(self, event: dict[str, Any], text: str) -> None:
        user = event.get("user")
        channel_id = event.get("channel")
        if not user or not channel_id:
            return

        ts = event.get("ts")
        thread_ts = event.get("thread_ts")
        reply_thread = thread_ts or ts
        # Channel conversations are anchored to their thread; a DM outside a
        # thread continues at the user/channel scope.
        session_thread = thread_ts if event.get("channel_type") == "im" else reply_thread

        await self._handle_message(
            sender_id=user,
            chat_id=channel_id,
            content=text,
            thread_id=session_thread,
            metadata={
                "reply_thread": reply_thread,
                "slack": {
                    "ts": ts,
                    "thread_ts": thread_ts,
                    "channel_type": event.get("channel_type"),
                },
            },
        )
