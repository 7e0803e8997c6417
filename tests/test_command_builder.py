from claude_slack.providers.command import build_args, probe_args
from claude_slack.session.resolver import Resolution, ResolutionMode


def test_fresh_run_has_base_flags_and_prompt_last():
    args = build_args("hello", Resolution(ResolutionMode.FRESH))

    assert args == ["--print", "--output-format", "json", "hello"]


def test_automatic_continuations_use_continue_flag():
    for mode in (ResolutionMode.CONTINUE_THREAD, ResolutionMode.CONTINUE_SCOPE, ResolutionMode.CONTINUE):
        args = build_args("again", Resolution(mode, "s1"))

        assert args == ["--print", "--output-format", "json", "--continue", "again"]
        assert "--resume" not in args


def test_explicit_resume_passes_session_id():
    args = build_args("go on", Resolution(ResolutionMode.RESUME, "abc-123"))

    assert args == ["--print", "--output-format", "json", "--resume", "abc-123", "go on"]


def test_mcp_server_flag_precedes_prompt():
    args = build_args("hi", Resolution(ResolutionMode.CONTINUE), mcp_server="claude-fleet")

    assert args[-3:] == ["--mcp-server", "claude-fleet", "hi"]


def test_prompt_is_passed_verbatim_even_when_it_looks_like_a_flag_or_is_empty():
    assert build_args("--help; rm -rf /", Resolution(ResolutionMode.FRESH))[-1] == "--help; rm -rf /"
    assert build_args("", Resolution(ResolutionMode.FRESH))[-1] == ""


def test_probe_args():
    assert probe_args() == ["--list-mcp-servers"]
