"""Session data types shared by the store, index and resolver."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class SessionKind(str, Enum):
    """Whether a session is anchored to a thread or to the whole channel."""

    THREAD = "thread"
    CHANNEL = "channel"

    @classmethod
    def for_thread(cls, thread_id: str | None) -> "SessionKind":
        return cls.THREAD if thread_id else cls.CHANNEL


@dataclass(frozen=True)
class SessionRecord:
    """One historical session, as persisted in the session store."""

    session_id: str
    owner: str
    channel: str
    thread_id: str | None
    created_at: datetime
    kind: SessionKind

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the on-disk key names."""
        return {
            "sessionId": self.session_id,
            "userId": self.owner,
            "channel": self.channel,
            "threadTs": self.thread_id,
            "createdAt": self.created_at.isoformat(),
            "type": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], session_id: str | None = None) -> "SessionRecord":
        """Parse a stored record, accepting camelCase or snake_case keys."""
        sid = data.get("sessionId") or data.get("session_id") or session_id
        if not sid:
            raise ValueError("session record has no session id")
        thread_id = data.get("threadTs") or data.get("thread_id") or None
        raw_kind = data.get("type") or data.get("kind")
        try:
            kind = SessionKind(raw_kind)
        except ValueError:
            # Older records stored "resume" here; derive kind from the thread.
            kind = SessionKind.for_thread(thread_id)
        return cls(
            session_id=str(sid),
            owner=str(data.get("userId") or data.get("owner") or ""),
            channel=str(data.get("channel") or ""),
            thread_id=str(thread_id) if thread_id else None,
            created_at=_parse_timestamp(data.get("createdAt") or data.get("created_at")),
            kind=kind,
        )


@dataclass(frozen=True)
class ThreadScope:
    """Index scope for a single conversation thread."""

    thread_id: str


@dataclass(frozen=True)
class UserChannelScope:
    """Index scope for a user within a channel (the broadest scope)."""

    owner: str
    channel: str


SessionScope = ThreadScope | UserChannelScope


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, (int, float)):
        ts = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str) and value:
        # datetime.fromisoformat() only accepts a trailing "Z" from 3.11 on.
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"invalid createdAt value: {value!r}")
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts
