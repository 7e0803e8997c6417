"""In-memory pointers to the current session of each scope."""

from __future__ import annotations

from claude_slack.session.models import SessionScope, ThreadScope, UserChannelScope


class SessionIndex:
    """
    Process-local "current session" maps.

    Two independent maps are kept: thread id -> session id and
    (owner, channel) -> session id. They are caches of the most recent session
    per scope, not history, and are lost on restart.
    """

    def __init__(self):
        self.threads: dict[str, str] = {}
        self.user_channels: dict[tuple[str, str], str] = {}

    def _map_for(self, scope: SessionScope) -> tuple[dict, object]:
        if isinstance(scope, ThreadScope):
            return self.threads, scope.thread_id
        if isinstance(scope, UserChannelScope):
            return self.user_channels, (scope.owner, scope.channel)
        raise TypeError(f"Unsupported session scope: {type(scope).__name__}")

    def get_current(self, scope: SessionScope) -> str | None:
        mapping, key = self._map_for(scope)
        return mapping.get(key)

    def set_current(self, scope: SessionScope, session_id: str) -> None:
        mapping, key = self._map_for(scope)
        mapping[key] = session_id

    def clear_current(self, scope: SessionScope) -> bool:
        """Drop the pointer for ``scope``. Returns False if there was none."""
        mapping, key = self._map_for(scope)
        return mapping.pop(key, None) is not None

    def point_all(
        self,
        session_id: str,
        owner: str,
        channel: str,
        thread_id: str | None = None,
    ) -> None:
        """Make ``session_id`` current for the thread (if any) and the user/channel pair."""
        if thread_id:
            self.set_current(ThreadScope(thread_id), session_id)
        self.set_current(UserChannelScope(owner, channel), session_id)
