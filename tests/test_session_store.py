import json
from datetime import datetime, timedelta, timezone

import pytest

from claude_slack.errors import StoreIOFailure
from claude_slack.session.models import SessionKind, SessionRecord
from claude_slack.session.store import SessionStore

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_append_writes_record_with_on_disk_keys(tmp_path):
    store = SessionStore(tmp_path / "sessions")

    record = store.append("abc-123", "U1", "C1", thread_id="1700000000.0001", created_at=T0)

    assert record.kind == SessionKind.THREAD
    data = json.loads((tmp_path / "sessions" / "abc-123.json").read_text(encoding="utf-8"))
    assert data == {
        "sessionId": "abc-123",
        "userId": "U1",
        "channel": "C1",
        "threadTs": "1700000000.0001",
        "createdAt": T0.isoformat(),
        "type": "thread",
    }


def test_append_without_thread_is_channel_kind(tmp_path):
    store = SessionStore(tmp_path)

    record = store.append("s1", "U1", "C1")

    assert record.kind == SessionKind.CHANNEL
    assert record.thread_id is None
    assert store.get("s1") == record


def test_append_is_idempotent_and_never_rewrites(tmp_path):
    store = SessionStore(tmp_path)
    first = store.append("s1", "U1", "C1", created_at=T0)

    second = store.append("s1", "U2", "C2", thread_id="t9", created_at=T0 + timedelta(days=1))

    assert second == first
    assert store.get("s1").owner == "U1"
    assert len(list(tmp_path.glob("*.json"))) == 1


def test_list_by_owner_channel_is_newest_first(tmp_path):
    store = SessionStore(tmp_path)
    store.append("s2", "U1", "C1", created_at=T0 + timedelta(hours=2))
    store.append("s3", "U1", "C1", created_at=T0 + timedelta(hours=3))
    store.append("s1", "U1", "C1", created_at=T0 + timedelta(hours=1))
    store.append("other-user", "U2", "C1", created_at=T0 + timedelta(hours=4))
    store.append("other-channel", "U1", "C2", created_at=T0 + timedelta(hours=5))

    records = store.list_by_owner_channel("U1", "C1")

    assert [r.session_id for r in records] == ["s3", "s2", "s1"]


def test_list_skips_corrupt_records(tmp_path):
    store = SessionStore(tmp_path)
    store.append("good", "U1", "C1", created_at=T0)
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "array.json").write_text("[1, 2]", encoding="utf-8")

    assert [r.session_id for r in store.list_by_owner_channel("U1", "C1")] == ["good"]
    assert store.get("broken") is None


def test_get_and_exists_for_unknown_ids(tmp_path):
    store = SessionStore(tmp_path)

    assert store.get("nope") is None
    assert store.exists("nope") is False
    assert store.exists("../etc/passwd") is False


@pytest.mark.parametrize("bad_id", ["", "../escape", "a/b", ".hidden", "with space"])
def test_append_rejects_ids_that_are_not_safe_filenames(tmp_path, bad_id):
    store = SessionStore(tmp_path)

    with pytest.raises(ValueError):
        store.append(bad_id, "U1", "C1")


def test_append_raises_store_io_failure_when_directory_is_unwritable(tmp_path, monkeypatch):
    store = SessionStore(tmp_path)

    def _fail(*args, **kwargs):
        raise PermissionError("read-only")

    monkeypatch.setattr("claude_slack.session.store.tempfile.mkstemp", _fail)

    with pytest.raises(StoreIOFailure):
        store.append("s1", "U1", "C1")
    assert store.get("s1") is None


def test_from_dict_accepts_legacy_resume_type_and_zulu_timestamps():
    record = SessionRecord.from_dict(
        {
            "sessionId": "s1",
            "userId": "U1",
            "channel": "C1",
            "threadTs": None,
            "createdAt": "2024-05-01T12:00:00.000Z",
            "type": "resume",
        }
    )

    assert record.kind == SessionKind.CHANNEL
    assert record.created_at == T0


def test_from_dict_falls_back_to_file_stem_for_id():
    record = SessionRecord.from_dict(
        {"userId": "U1", "channel": "C1", "createdAt": T0.isoformat(), "type": "thread", "threadTs": "t1"},
        session_id="from-stem",
    )

    assert record.session_id == "from-stem"
    assert record.kind == SessionKind.THREAD
