"""Error types raised while talking to the Claude CLI and the session store."""

from __future__ import annotations


class ClaudeSlackError(Exception):
    """Base class for all claude-slack errors."""


class SpawnFailed(ClaudeSlackError):
    """The Claude binary could not be started (missing or not executable)."""

    def __init__(self, binary: str, reason: str):
        self.binary = binary
        self.reason = reason
        super().__init__(f"Failed to spawn Claude process '{binary}': {reason}")


class ProcessFailed(ClaudeSlackError):
    """The Claude process exited with a nonzero code."""

    def __init__(self, returncode: int, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no error output"
        super().__init__(f"Claude exited with code {returncode}: {detail}")


class ClaudeTimeout(ClaudeSlackError):
    """The Claude process did not finish within the wall-clock limit."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Claude command timed out after {timeout_seconds:g} seconds")


class SessionNotFound(ClaudeSlackError):
    """An explicit resume referenced a session id with no stored record."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class StoreIOFailure(ClaudeSlackError):
    """Reading or writing session metadata on disk failed."""
