import pytest

from claude_slack.agent.formatter import (
    EMPTY_RESPONSE,
    TRUNCATION_NOTICE,
    detect_language,
    format_response,
    looks_like_code,
)


@pytest.mark.parametrize("text", [None, "", "   \n\t "])
def test_empty_output_becomes_placeholder(text):
    assert format_response(text) == EMPTY_RESPONSE


def test_already_fenced_output_passes_through_trimmed():
    text = "\nHere you go:\n```python\nprint('hi')\n```\n"

    assert format_response(text) == "Here you go:\n```python\nprint('hi')\n```"


def test_prose_is_trimmed_and_unchanged():
    assert format_response("  Sure, happy to help.  ") == "Sure, happy to help."


def test_python_code_is_fenced_with_language():
    text = "def add(a, b):\n    return a + b"

    assert format_response(text) == f"```python\n{text}\n```"


def test_javascript_code_is_fenced_with_language():
    text = "const x = 1;\nconsole.log(x);"

    assert format_response(text) == f"```javascript\n{text}\n```"


def test_long_prose_is_truncated_with_notice():
    result = format_response("a" * 3500)

    assert result == "a" * 2900 + TRUNCATION_NOTICE
    assert result.endswith("_[Response truncated due to length]_")


def test_prose_at_limit_is_not_truncated():
    assert format_response("a" * 3000) == "a" * 3000


@pytest.mark.parametrize(
    ("text", "language"),
    [
        ("<div>hello</div>", "html"),
        ("let total = 0", "javascript"),
        ("import os", "python"),
        ("public class Main {}", "java"),
        ("#include <stdio.h>", "c"),
        ("std::vector<int> v", "cpp"),
        ("echo $HOME", "bash"),
        ("nothing special here", ""),
    ],
)
def test_detect_language(text, language):
    assert detect_language(text) == language


def test_looks_like_code():
    assert looks_like_code("import sys")
    assert looks_like_code("x = call();")
    assert not looks_like_code("Plain sentence without code")
