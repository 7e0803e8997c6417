"""Session-aware client that runs Claude CLI commands on behalf of chat users."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from loguru import logger

from claude_slack.errors import SessionNotFound, StoreIOFailure
from claude_slack.providers.claude_cli import ClaudeCLI, ClaudeResult
from claude_slack.providers.command import build_args
from claude_slack.session.index import SessionIndex
from claude_slack.session.models import SessionKind, SessionRecord, ThreadScope, UserChannelScope
from claude_slack.session.resolver import SessionMode, SessionResolver
from claude_slack.session.store import SessionStore

NEW_SESSION_PROMPT = "Hello! I'm ready to help you with your project."


@dataclass
class SessionStatus:
    """Current session of a scope, as seen from the in-memory index."""

    has_session: bool
    session_id: str | None = None
    thread_based: bool = False
    kind: SessionKind | None = None
    created_at: datetime | None = None


class ClaudeClient:
    """
    Runs prompts through the Claude CLI while tracking conversational continuity.

    It:
    1. Resolves the session a message belongs to
    2. Builds the CLI arguments (optionally enabling the MCP integration)
    3. Runs the CLI in the agent's working directory
    4. Records the returned session id in the store and both indexes
    """

    def __init__(
        self,
        cli: ClaudeCLI,
        store: SessionStore,
        working_dir: Path,
        index: SessionIndex | None = None,
        mcp_server: str | None = "claude-fleet",
        probe_ttl_seconds: float = 300.0,
    ):
        self.cli = cli
        self.store = store
        self.working_dir = Path(working_dir)
        self.index = index or SessionIndex()
        self.resolver = SessionResolver(self.index, self.store)
        self.mcp_server = mcp_server
        self.probe_ttl_seconds = probe_ttl_seconds
        self._probe_available = False
        self._probe_checked_at: float | None = None
        self._probe_lock = asyncio.Lock()

    async def execute_command(
        self,
        prompt: str,
        owner: str,
        channel: str,
        thread_id: str | None = None,
        mode: str | SessionMode | None = None,
    ) -> ClaudeResult:
        """
        Run one prompt and record the session it produced.

        Raises:
            SessionNotFound: ``mode`` is ``resume:<id>`` for an unknown id.
            SpawnFailed, ProcessFailed, ClaudeTimeout: the CLI run failed.
        """
        resolution = self.resolver.resolve(owner, channel, thread_id, mode)
        mcp_server = await self._available_mcp_server()
        args = build_args(prompt, resolution, mcp_server=mcp_server)

        where = f"{owner}:{channel}" + (f":{thread_id}" if thread_id else "")
        logger.info(f"Running claude ({resolution.mode.value}) for {where}")

        result = await self.cli.invoke(args, self.working_dir)

        if result.session_id:
            self._record_session(result.session_id, owner, channel, thread_id)
        return result

    async def _available_mcp_server(self) -> str | None:
        """
        Return the MCP server name if the CLI reports it, re-probing after the TTL.

        Probes never overlap: callers that waited on an in-flight probe reuse
        its answer instead of spawning their own.
        """
        if not self.mcp_server:
            return None
        requested_at = time.monotonic()
        async with self._probe_lock:
            if not self._probe_is_fresh(requested_at):
                self._probe_available = await self.cli.probe_integration(self.mcp_server, self.working_dir)
                self._probe_checked_at = time.monotonic()
                logger.debug(f"MCP server {self.mcp_server} available: {self._probe_available}")
        return self.mcp_server if self._probe_available else None

    def _probe_is_fresh(self, requested_at: float) -> bool:
        checked_at = self._probe_checked_at
        if checked_at is None:
            return False
        if checked_at >= requested_at:
            return True
        return self.probe_ttl_seconds > 0 and requested_at - checked_at < self.probe_ttl_seconds

    def _record_session(
        self,
        session_id: str,
        owner: str,
        channel: str,
        thread_id: str | None,
    ) -> None:
        self.index.point_all(session_id, owner, channel, thread_id)
        try:
            self.store.append(session_id, owner, channel, thread_id)
        except (StoreIOFailure, ValueError) as e:
            # The reply still goes out; the session just is not resumable after restart.
            logger.warning(f"Failed to persist session {session_id}: {e}")

    async def start_new_session(
        self,
        owner: str,
        channel: str,
        thread_id: str | None = None,
        prompt: str | None = None,
    ) -> ClaudeResult:
        """Drop the current pointers for this scope and start a fresh conversation."""
        if thread_id:
            self.index.clear_current(ThreadScope(thread_id))
        self.index.clear_current(UserChannelScope(owner, channel))
        return await self.execute_command(
            prompt or NEW_SESSION_PROMPT, owner, channel, thread_id, mode="new"
        )

    async def continue_session(
        self,
        prompt: str,
        owner: str,
        channel: str,
        thread_id: str | None = None,
    ) -> ClaudeResult:
        return await self.execute_command(prompt, owner, channel, thread_id, mode="continue")

    async def resume_session(
        self,
        session_id: str,
        prompt: str,
        owner: str,
        channel: str,
        thread_id: str | None = None,
    ) -> ClaudeResult:
        return await self.execute_command(
            prompt, owner, channel, thread_id, mode=SessionMode.resume(session_id)
        )

    def set_active_session(
        self,
        session_id: str,
        owner: str,
        channel: str,
        thread_id: str | None = None,
    ) -> SessionRecord:
        """Point this scope at a stored session."""
        record = self.store.get(session_id)
        if record is None:
            raise SessionNotFound(session_id)
        self.index.point_all(session_id, owner, channel, thread_id)
        return record

    def get_session_status(
        self,
        owner: str,
        channel: str,
        thread_id: str | None = None,
    ) -> SessionStatus:
        session_id = None
        thread_based = False
        if thread_id:
            session_id = self.index.get_current(ThreadScope(thread_id))
            thread_based = session_id is not None
        if session_id is None:
            session_id = self.index.get_current(UserChannelScope(owner, channel))
        if session_id is None:
            return SessionStatus(has_session=False)

        record = self.store.get(session_id)
        if record is not None:
            kind = record.kind
        else:
            kind = SessionKind.THREAD if thread_based else SessionKind.CHANNEL
        return SessionStatus(
            has_session=True,
            session_id=session_id,
            thread_based=thread_based,
            kind=kind,
            created_at=record.created_at if record else None,
        )

    def list_user_sessions(self, owner: str, channel: str) -> list[SessionRecord]:
        return self.store.list_by_owner_channel(owner, channel)

    def clear_thread_session(self, thread_id: str | None) -> bool:
        if not thread_id:
            return False
        return self.index.clear_current(ThreadScope(thread_id))

    def clear_user_session(self, owner: str, channel: str) -> bool:
        return self.index.clear_current(UserChannelScope(owner, channel))
