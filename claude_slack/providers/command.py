"""Argument vectors for the Claude CLI."""

from __future__ import annotations

from claude_slack.session.resolver import Resolution, ResolutionMode

BASE_ARGS = ("--print", "--output-format", "json")
PROBE_ARGS = ("--list-mcp-servers",)


def build_args(
    prompt: str,
    resolution: Resolution,
    mcp_server: str | None = None,
) -> list[str]:
    """
    Translate a resolution and a prompt into Claude CLI arguments.

    Automatic continuations use ``--continue`` rather than the tracked id: the
    CLI keeps its own notion of the latest conversation per working directory.
    Only an explicit resume passes ``--resume <id>``. The prompt is always the
    last argument and is passed through untouched, empty or not.
    """
    args = list(BASE_ARGS)

    if resolution.mode == ResolutionMode.RESUME:
        if not resolution.session_id:
            raise ValueError("resume resolution without a session id")
        args.extend(["--resume", resolution.session_id])
    elif resolution.mode.continues:
        args.append("--continue")

    if mcp_server:
        args.extend(["--mcp-server", mcp_server])

    args.append(prompt)
    return args


def probe_args() -> list[str]:
    """Arguments for listing the MCP servers the CLI knows about."""
    return list(PROBE_ARGS)
