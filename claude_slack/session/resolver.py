"""Decide which conversation an incoming message continues."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from claude_slack.errors import SessionNotFound
from claude_slack.session.index import SessionIndex
from claude_slack.session.models import ThreadScope, UserChannelScope
from claude_slack.session.store import SessionStore


class ResolutionMode(str, Enum):
    """How the Claude CLI should treat the next prompt."""

    FRESH = "fresh"
    CONTINUE_THREAD = "continue-thread"
    CONTINUE_SCOPE = "continue-scope"
    CONTINUE = "continue"
    RESUME = "resume"

    @property
    def continues(self) -> bool:
        return self in (
            ResolutionMode.CONTINUE_THREAD,
            ResolutionMode.CONTINUE_SCOPE,
            ResolutionMode.CONTINUE,
        )


@dataclass(frozen=True)
class Resolution:
    mode: ResolutionMode
    session_id: str | None = None


@dataclass(frozen=True)
class SessionMode:
    """
    Caller-supplied override of automatic resolution.

    String forms: ``auto``, ``new``, ``continue`` and ``resume:<id>``.
    """

    kind: str = "auto"
    session_id: str | None = None

    KINDS = ("auto", "new", "continue", "resume")

    @classmethod
    def parse(cls, value: "str | SessionMode | None") -> "SessionMode":
        if value is None:
            return cls()
        if isinstance(value, SessionMode):
            return value
        text = value.strip()
        kind, _, session_id = text.partition(":")
        kind = kind.strip().lower()
        session_id = session_id.strip()
        if kind not in cls.KINDS:
            raise ValueError(f"Unknown session mode: {value!r}")
        if kind == "resume":
            if not session_id:
                raise ValueError("resume mode requires a session id (resume:<id>)")
            return cls(kind, session_id)
        if session_id:
            raise ValueError(f"Session mode {kind!r} does not take a session id")
        return cls(kind)

    @classmethod
    def resume(cls, session_id: str) -> "SessionMode":
        return cls("resume", session_id)

    def __str__(self) -> str:
        return f"resume:{self.session_id}" if self.kind == "resume" else self.kind


class SessionResolver:
    """Resolve (owner, channel, thread) to a continuation mode. Never mutates state."""

    def __init__(self, index: SessionIndex, store: SessionStore):
        self.index = index
        self.store = store

    def resolve(
        self,
        owner: str,
        channel: str,
        thread_id: str | None = None,
        mode: "str | SessionMode | None" = None,
    ) -> Resolution:
        """
        Pick the continuation mode for a message.

        An explicit ``new``/``continue``/``resume:<id>`` mode wins outright.
        Otherwise the thread pointer is tried first, then the user/channel
        pointer, and with neither the conversation starts fresh.

        Raises:
            SessionNotFound: ``resume:<id>`` names a session the store has no
                record of.
        """
        requested = SessionMode.parse(mode)

        if requested.kind == "new":
            return Resolution(ResolutionMode.FRESH)
        if requested.kind == "continue":
            return Resolution(ResolutionMode.CONTINUE)
        if requested.kind == "resume":
            if not self.store.exists(requested.session_id):
                raise SessionNotFound(requested.session_id)
            return Resolution(ResolutionMode.RESUME, requested.session_id)

        if thread_id:
            session_id = self.index.get_current(ThreadScope(thread_id))
            if session_id:
                return Resolution(ResolutionMode.CONTINUE_THREAD, session_id)

        session_id = self.index.get_current(UserChannelScope(owner, channel))
        if session_id:
            return Resolution(ResolutionMode.CONTINUE_SCOPE, session_id)

        return Resolution(ResolutionMode.FRESH)
