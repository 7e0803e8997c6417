import pytest

from claude_slack.errors import SessionNotFound
from claude_slack.session.index import SessionIndex
from claude_slack.session.models import ThreadScope, UserChannelScope
from claude_slack.session.resolver import ResolutionMode, SessionMode, SessionResolver
from claude_slack.session.store import SessionStore


@pytest.fixture
def index():
    return SessionIndex()


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path)


@pytest.fixture
def resolver(index, store):
    return SessionResolver(index, store)


def test_fresh_when_nothing_is_known(resolver):
    resolution = resolver.resolve("U1", "C1", "t1")

    assert resolution.mode == ResolutionMode.FRESH
    assert resolution.session_id is None


def test_thread_pointer_wins_over_user_channel_pointer(resolver, index):
    index.set_current(ThreadScope("t1"), "thread-session")
    index.set_current(UserChannelScope("U1", "C1"), "scope-session")

    resolution = resolver.resolve("U1", "C1", "t1")

    assert resolution.mode == ResolutionMode.CONTINUE_THREAD
    assert resolution.session_id == "thread-session"


def test_thread_is_shared_between_users(resolver, index):
    index.point_all("s1", "U1", "C1", "t1")

    resolution = resolver.resolve("U2", "C1", "t1")

    assert resolution.mode == ResolutionMode.CONTINUE_THREAD
    assert resolution.session_id == "s1"


def test_new_thread_falls_back_to_user_channel_pointer(resolver, index):
    index.point_all("s1", "U1", "C1", "t1")

    resolution = resolver.resolve("U1", "C1", "t2")

    assert resolution.mode == ResolutionMode.CONTINUE_SCOPE
    assert resolution.session_id == "s1"


def test_other_user_in_new_thread_starts_fresh(resolver, index):
    index.point_all("s1", "U1", "C1", "t1")

    assert resolver.resolve("U2", "C1", "t2").mode == ResolutionMode.FRESH


def test_explicit_new_ignores_pointers(resolver, index):
    index.point_all("s1", "U1", "C1", "t1")

    assert resolver.resolve("U1", "C1", "t1", mode="new").mode == ResolutionMode.FRESH


def test_explicit_continue_needs_no_pointer(resolver):
    resolution = resolver.resolve("U1", "C1", mode="continue")

    assert resolution.mode == ResolutionMode.CONTINUE
    assert resolution.mode.continues


def test_explicit_resume_of_stored_session(resolver, store):
    store.append("abc", "U9", "C9")

    resolution = resolver.resolve("U1", "C1", "t1", mode="resume:abc")

    assert resolution.mode == ResolutionMode.RESUME
    assert resolution.session_id == "abc"
    assert not resolution.mode.continues


def test_explicit_resume_of_unknown_session_raises_without_touching_index(resolver, index):
    index.point_all("s1", "U1", "C1", "t1")
    before = (dict(index.threads), dict(index.user_channels))

    with pytest.raises(SessionNotFound) as exc_info:
        resolver.resolve("U1", "C1", "t1", mode=SessionMode.resume("missing"))

    assert exc_info.value.session_id == "missing"
    assert (index.threads, index.user_channels) == before


@pytest.mark.parametrize(
    ("text", "kind", "session_id"),
    [
        (None, "auto", None),
        ("auto", "auto", None),
        ("NEW", "new", None),
        ("continue", "continue", None),
        ("resume:abc-1", "resume", "abc-1"),
    ],
)
def test_session_mode_parse(text, kind, session_id):
    mode = SessionMode.parse(text)

    assert mode.kind == kind
    assert mode.session_id == session_id


@pytest.mark.parametrize("text", ["resume", "resume:", "bogus", "new:abc"])
def test_session_mode_parse_rejects_malformed_modes(text):
    with pytest.raises(ValueError):
        SessionMode.parse(text)


def test_session_mode_str_round_trips():
    assert str(SessionMode.resume("abc")) == "resume:abc"
    assert str(SessionMode.parse("new")) == "new"


def test_clear_current_reports_whether_a_pointer_existed(index):
    index.set_current(ThreadScope("t1"), "s1")

    assert index.clear_current(ThreadScope("t1")) is True
    assert index.clear_current(ThreadScope("t1")) is False
    assert index.get_current(ThreadScope("t1")) is None
