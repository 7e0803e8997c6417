"""Append-only on-disk log of Claude sessions.

Each session gets one JSON file named after its id. Records are never
rewritten or deleted: the "current" session for a thread or a user/channel
pair lives in :class:`~claude_slack.session.index.SessionIndex`, and this
store only answers "which sessions ever existed".
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from claude_slack.errors import StoreIOFailure
from claude_slack.session.models import SessionKind, SessionRecord

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*$")


class SessionStore:
    """Directory of ``<session_id>.json`` records."""

    def __init__(self, sessions_dir: Path):
        self.sessions_dir = Path(sessions_dir).expanduser()
        try:
            self.sessions_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Failed to create sessions directory {self.sessions_dir}: {e}")

    @staticmethod
    def is_valid_session_id(session_id: str) -> bool:
        return bool(session_id) and bool(_SESSION_ID_RE.match(session_id))

    def _path_for(self, session_id: str) -> Path:
        if not self.is_valid_session_id(session_id):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self.sessions_dir / f"{session_id}.json"

    def append(
        self,
        session_id: str,
        owner: str,
        channel: str,
        thread_id: str | None = None,
        created_at: datetime | None = None,
    ) -> SessionRecord:
        """
        Write a new historical record for ``session_id``.

        An existing record for the same id is left untouched and returned, so
        calling this twice is harmless.

        Raises:
            ValueError: the id cannot be used as a record name.
            StoreIOFailure: the record could not be written.
        """
        path = self._path_for(session_id)
        existing = self.get(session_id)
        if existing is not None:
            return existing

        record = SessionRecord(
            session_id=session_id,
            owner=owner,
            channel=channel,
            thread_id=thread_id,
            created_at=created_at or datetime.now(timezone.utc),
            kind=SessionKind.for_thread(thread_id),
        )
        payload = json.dumps(record.to_dict(), indent=2, ensure_ascii=False)
        try:
            self.sessions_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.sessions_dir, prefix=f".{session_id}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StoreIOFailure(f"Failed to write session {session_id}: {e}") from e

        logger.debug(f"Stored session {session_id} ({record.kind.value}) for {owner}:{channel}")
        return record

    def get(self, session_id: str) -> SessionRecord | None:
        """Look up one record; unknown, invalid or unreadable ids yield None."""
        if not self.is_valid_session_id(session_id):
            return None
        path = self.sessions_dir / f"{session_id}.json"
        if not path.is_file():
            return None
        return self._load(path)

    def exists(self, session_id: str) -> bool:
        return self.get(session_id) is not None

    def list_by_owner_channel(self, owner: str, channel: str) -> list[SessionRecord]:
        """All records owned by ``owner`` in ``channel``, newest first."""
        try:
            paths = sorted(self.sessions_dir.glob("*.json"))
        except OSError as e:
            logger.warning(f"Failed to list sessions in {self.sessions_dir}: {e}")
            return []

        records = []
        for path in paths:
            record = self._load(path)
            if record and record.owner == owner and record.channel == channel:
                records.append(record)
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def _load(self, path: Path) -> SessionRecord | None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("record is not a JSON object")
            return SessionRecord.from_dict(data, session_id=path.stem)
        except (OSError, ValueError) as e:
            logger.warning(f"Skipping unreadable session record {path.name}: {e}")
            return None
