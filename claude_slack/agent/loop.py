"""Agent loop: the core processing engine."""

from __future__ import annotations

import asyncio
import re
from typing import Awaitable, Callable

from loguru import logger

from claude_slack.agent.client import ClaudeClient
from claude_slack.agent.formatter import format_response
from claude_slack.bus.events import InboundMessage, OutboundMessage
from claude_slack.bus.queue import MessageBus
from claude_slack.errors import ClaudeTimeout, SessionNotFound, SpawnFailed
from claude_slack.providers.claude_cli import ClaudeResult
from claude_slack.session.resolver import SessionMode

_SESSION_COMMAND_RE = re.compile(
    r"^(?:claude\s+)?session\s+(new|start|continue|list|resume|status|clear)\b\s*(.*)$",
    re.IGNORECASE | re.DOTALL,
)
_RESUME_ARGS_RE = re.compile(r"^([A-Za-z0-9_.-]+)\s*(.*)$", re.DOTALL)

MAX_LISTED_SESSIONS = 10


def is_session_command(text: str) -> bool:
    return bool(_SESSION_COMMAND_RE.match((text or "").strip()))


class _PinnedResume:
    """An explicit resume waiting for the next prompt in its scopes."""

    __slots__ = ("session_id",)

    def __init__(self, session_id: str):
        self.session_id = session_id


class PinnedResumes:
    """
    Explicit resumes requested without a prompt.

    A pin is registered under every scope key of the command message, so the
    follow-up finds it whether it arrives in the acknowledgement's thread or at
    the top level. Releasing a pin drops it from all of its keys at once.
    """

    def __init__(self):
        self._pins: dict[str, _PinnedResume] = {}

    def pin(self, msg: InboundMessage, session_id: str) -> None:
        self.discard(msg)
        pin = _PinnedResume(session_id)
        for key in msg.scope_keys:
            self._pins[key] = pin

    def find(self, msg: InboundMessage) -> _PinnedResume | None:
        for key in msg.scope_keys:
            pin = self._pins.get(key)
            if pin is not None:
                return pin
        return None

    def release(self, pin: _PinnedResume) -> None:
        self._pins = {key: other for key, other in self._pins.items() if other is not pin}

    def discard(self, msg: InboundMessage) -> None:
        """Drop every pin reachable from this message's scopes."""
        while (pin := self.find(msg)) is not None:
            self.release(pin)


class AgentLoop:
    """
    The agent loop is the core processing engine.

    It:
    1. Receives messages from the bus
    2. Handles `session ...` chat commands
    3. Runs prompts through the session-aware Claude client
    4. Sends formatted responses (or error descriptions) back

    Every message is handled in its own task. Messages for the same thread are
    not serialized: if two overlap, the reply that returns last owns the
    thread's session pointer.
    """

    def __init__(
        self,
        bus: MessageBus,
        client: ClaudeClient,
        bot_name: str = "Claude",
    ):
        self.bus = bus
        self.client = client
        self.bot_name = bot_name
        self._running = False
        self._tasks: set[asyncio.Task[None]] = set()
        self._pinned_resumes = PinnedResumes()

    async def run(self) -> None:
        """Run the agent loop, processing messages from the bus."""
        self._running = True
        logger.info("Agent loop started")

        try:
            while self._running:
                try:
                    msg = await asyncio.wait_for(
                        self.bus.consume_inbound(),
                        timeout=1.0
                    )
                except asyncio.TimeoutError:
                    continue
                task = asyncio.create_task(self._process_inbound_message(msg))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        finally:
            await self._shutdown_tasks()

    async def _process_inbound_message(self, msg: InboundMessage) -> None:
        """Process one inbound message and publish the response."""
        response = await self._handle(msg)
        if response:
            await self.bus.publish_outbound(response)

    async def _handle(
        self,
        msg: InboundMessage,
        on_progress: Callable[[str], Awaitable[None]] | None = None,
    ) -> OutboundMessage | None:
        """Message-handling boundary: every failure becomes a chat reply."""
        try:
            return await self._process_message(msg, on_progress=on_progress)
        except Exception as e:
            logger.error(f"Error processing message: {e}")
            return self._reply(msg, self._describe_error(e))

    @staticmethod
    def _describe_error(error: Exception) -> str:
        if isinstance(error, SessionNotFound):
            return f"Sorry, I couldn't find session {error.session_id}."
        if isinstance(error, SpawnFailed):
            return (
                "Sorry, I couldn't start Claude. "
                f"Is `{error.binary}` installed on this host? ({error.reason})"
            )
        if isinstance(error, ClaudeTimeout):
            return f"Sorry, Claude didn't answer within {error.timeout_seconds:g} seconds."
        return f"Sorry, I encountered an error: {error}"

    async def _shutdown_tasks(self) -> None:
        """Cancel and await in-flight message tasks."""
        tasks = list(self._tasks)
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def stop(self) -> None:
        """Stop the agent loop."""
        self._running = False
        logger.info("Agent loop stopping")

    @staticmethod
    def _reply(msg: InboundMessage, content: str) -> OutboundMessage:
        return OutboundMessage(
            channel=msg.channel,
            chat_id=msg.chat_id,
            content=content,
            thread_id=msg.reply_thread,
            metadata=msg.metadata or {},  # Pass through for channel-specific needs
        )

    def _footer(self, result: ClaudeResult | None = None) -> str:
        footer = f"\n\n_[{self.bot_name}]_"
        if result and result.session_id:
            footer += f" | _Session: {result.session_id[:8]}..._"
            if result.cost_usd:
                footer += f" | _Cost: ${result.cost_usd:.4f}_"
        return footer

    def _render(self, result: ClaudeResult, header: str = "") -> str:
        return header + format_response(result.text) + self._footer(result)

    def _help_text(self) -> str:
        return (
            f"Hi! I'm {self.bot_name}. Mention me with a prompt to use Claude, "
            "for example: `@bot help me debug this function`\n\n"
            "Available commands:\n"
            "• `session new [prompt]` - Start a new session\n"
            "• `session continue [prompt]` - Continue the most recent conversation\n"
            "• `session list` - List your recent sessions\n"
            "• `session resume <sessionId> [prompt]` - Resume a specific session\n"
            "• `session status` - Check current session status\n"
            "• `session clear` - Clear current thread session"
        )

    async def _process_message(
        self,
        msg: InboundMessage,
        on_progress: Callable[[str], Awaitable[None]] | None = None,
    ) -> OutboundMessage | None:
        """
        Process a single inbound message.

        Args:
            msg: The inbound message to process.
            on_progress: Optional callback for the "working on it" notice.

        Returns:
            The response message, or None if no response needed.
        """
        preview = msg.content[:80] + "..." if len(msg.content) > 80 else msg.content
        logger.info(f"Processing message from {msg.channel}:{msg.sender_id}: {preview}")

        content = msg.content.strip()
        if not content or content.lower() in {"help", "/help"}:
            return self._reply(msg, self._help_text())

        if match := _SESSION_COMMAND_RE.match(content):
            return await self._handle_session_command(
                msg, match.group(1).lower(), match.group(2).strip(), on_progress
            )

        mode = None
        pinned = self._pinned_resumes.find(msg)
        if pinned is not None:
            mode = SessionMode.resume(pinned.session_id)

        await self._notify_progress(msg, on_progress)
        result = await self.client.execute_command(
            msg.content,
            owner=msg.sender_id,
            channel=msg.chat_id,
            thread_id=msg.thread_id,
            mode=mode,
        )
        if pinned is not None:
            # Released only after a successful run.
            self._pinned_resumes.release(pinned)

        text = self._render(result)
        preview = text[:120] + "..." if len(text) > 120 else text
        logger.info(f"Response to {msg.channel}:{msg.sender_id}: {preview}")
        return self._reply(msg, text)

    async def _notify_progress(
        self,
        msg: InboundMessage,
        on_progress: Callable[[str], Awaitable[None]] | None,
    ) -> None:
        content = "Processing your request..."
        if on_progress:
            await on_progress(content)
            return
        metadata = dict(msg.metadata or {})
        metadata["progress"] = True
        await self.bus.publish_outbound(OutboundMessage(
            channel=msg.channel,
            chat_id=msg.chat_id,
            content=content,
            thread_id=msg.reply_thread,
            metadata=metadata,
        ))

    async def _handle_session_command(
        self,
        msg: InboundMessage,
        command: str,
        argument: str,
        on_progress: Callable[[str], Awaitable[None]] | None,
    ) -> OutboundMessage:
        owner, channel, thread_id = msg.sender_id, msg.chat_id, msg.thread_id

        if command in {"new", "start"}:
            self._pinned_resumes.discard(msg)
            await self._notify_progress(msg, on_progress)
            result = await self.client.start_new_session(
                owner, channel, thread_id, prompt=argument or None
            )
            return self._reply(msg, self._render(result, header="🆕 Started a new Claude session!\n\n"))

        if command == "continue":
            if argument:
                await self._notify_progress(msg, on_progress)
                result = await self.client.continue_session(argument, owner, channel, thread_id)
                return self._reply(msg, self._render(result))
            status = self.client.get_session_status(owner, channel, thread_id)
            if not status.has_session:
                return self._reply(
                    msg,
                    "No previous session found. Use `session new` to start a fresh session.",
                )
            return self._reply(
                msg,
                f"🔄 Continuing your previous session ({status.session_id[:8]}...).\n\n"
                "What would you like me to help you with?" + self._footer(),
            )

        if command == "list":
            sessions = self.client.list_user_sessions(owner, channel)
            if not sessions:
                return self._reply(msg, "📋 No previous sessions found for this channel.")
            lines = []
            for i, record in enumerate(sessions[:MAX_LISTED_SESSIONS], 1):
                created = record.created_at.strftime("%Y-%m-%d %H:%M UTC")
                thread_info = " (Thread)" if record.thread_id else ""
                lines.append(f"{i}. `{record.session_id}` - {created}{thread_info}")
            return self._reply(
                msg,
                "📋 Your recent Claude sessions:\n\n" + "\n".join(lines)
                + "\n\n_Use `session resume <sessionId>` to continue a specific session_",
            )

        if command == "resume":
            parsed = _RESUME_ARGS_RE.match(argument)
            if not parsed:
                return self._reply(msg, "Usage: `session resume <sessionId> [prompt]`")
            session_id, prompt = parsed.group(1), parsed.group(2).strip()
            if prompt:
                await self._notify_progress(msg, on_progress)
                result = await self.client.resume_session(session_id, prompt, owner, channel, thread_id)
                return self._reply(msg, self._render(result))
            self.client.set_active_session(session_id, owner, channel, thread_id)
            self._pinned_resumes.pin(msg, session_id)
            return self._reply(
                msg,
                f"🔄 Resuming session {session_id[:8]}...\n\n"
                "What would you like me to help you with?",
            )

        if command == "status":
            status = self.client.get_session_status(owner, channel, thread_id)
            if not status.has_session:
                return self._reply(
                    msg,
                    "📊 No active session found.\n\n"
                    "Use `session new` to start a fresh session or `session list` "
                    "to see previous sessions.",
                )
            session_type = "Thread-based" if status.thread_based else "Channel-based"
            created = (
                status.created_at.strftime("%Y-%m-%d %H:%M UTC") if status.created_at else "unknown"
            )
            return self._reply(
                msg,
                "📊 Current session status:\n\n"
                f"• *Session ID:* `{status.session_id}`\n"
                f"• *Type:* {session_type}\n"
                f"• *Created:* {created}",
            )

        # clear
        self._pinned_resumes.discard(msg)
        cleared = self.client.clear_thread_session(thread_id)
        if not cleared:
            cleared = self.client.clear_user_session(owner, channel)
        if cleared:
            return self._reply(
                msg,
                "🧹 Session cleared. Your next message will start a new conversation context.",
            )
        return self._reply(msg, "📭 No active session found to clear.")

    async def process_direct(
        self,
        content: str,
        sender_id: str = "user",
        chat_id: str = "direct",
        thread_id: str | None = None,
        on_progress: Callable[[str], Awaitable[None]] | None = None,
    ) -> str:
        """
        Process a message directly (for CLI usage).

        Returns:
            The agent's response text.
        """
        msg = InboundMessage(
            channel="cli",
            sender_id=sender_id,
            chat_id=chat_id,
            content=content,
            thread_id=thread_id,
        )

        async def _quiet(_: str) -> None:
            return None

        response = await self._handle(msg, on_progress=on_progress or _quiet)
        return response.content if response else ""
