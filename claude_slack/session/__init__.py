"""Session continuity: on-disk history, in-memory pointers and resolution."""

from claude_slack.session.index import SessionIndex
from claude_slack.session.models import SessionKind, SessionRecord, ThreadScope, UserChannelScope
from claude_slack.session.resolver import Resolution, ResolutionMode, SessionMode, SessionResolver
from claude_slack.session.store import SessionStore

__all__ = [
    "SessionIndex",
    "SessionKind",
    "SessionRecord",
    "SessionStore",
    "SessionResolver",
    "SessionMode",
    "Resolution",
    "ResolutionMode",
    "ThreadScope",
    "UserChannelScope",
]
