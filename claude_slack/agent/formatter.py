"""Turn Claude output into a single Slack-ready text block."""

from __future__ import annotations

import re

EMPTY_RESPONSE = "Claude returned an empty response."
MAX_RESPONSE_CHARS = 3000
TRUNCATE_AT = 2900
TRUNCATION_NOTICE = "\n\n_[Response truncated due to length]_"

_CODE_INDICATORS = [
    re.compile(r"^\s*(?:function|class|def|import|from|const|let|var|if|for|while)\s", re.M),
    re.compile(r"[{}();]\s*$", re.M),
    re.compile(r"^\s*[#/]\s", re.M),
    re.compile(r"^\s*<[^>]+>", re.M),
    re.compile(r"^\s*[\w-]+:\s*[\w-]+", re.M),
]

# Checked in order; first match wins.
_LANGUAGE_HINTS = [
    ("html", re.compile(r"^\s*<[^>]+>")),
    ("javascript", re.compile(r"function\s+\w+\s*\(|const\s+\w+\s*=|let\s+\w+\s*=")),
    ("python", re.compile(r"def\s+\w+\s*\(|import\s+\w+|from\s+\w+")),
    ("java", re.compile(r"class\s+\w+|public\s+class|private\s+")),
    ("c", re.compile(r"#include|int\s+main|printf\(")),
    ("cpp", re.compile(r"using\s+namespace|std::|cout\s*<<")),
    ("bash", re.compile(r"\$\w+|\{\{\s*\w+")),
]


def looks_like_code(text: str) -> bool:
    return any(pattern.search(text) for pattern in _CODE_INDICATORS)


def detect_language(text: str) -> str:
    """Guess a fence language tag; empty string when nothing matches."""
    for language, pattern in _LANGUAGE_HINTS:
        if pattern.search(text):
            return language
    return ""


def format_response(text: str | None) -> str:
    """
    Format text for Slack.

    Already-fenced output passes through, code-looking output gets fenced,
    and long prose is cut to ``TRUNCATE_AT`` characters plus a notice.
    Purely cosmetic: stored session data is never touched.
    """
    if not text or not text.strip():
        return EMPTY_RESPONSE

    formatted = text.strip()

    if "```" in formatted:
        return formatted

    if looks_like_code(formatted):
        language = detect_language(formatted)
        return f"```{language}\n{formatted}\n```"

    if len(formatted) > MAX_RESPONSE_CHARS:
        return formatted[:TRUNCATE_AT] + TRUNCATION_NOTICE

    return formatted
