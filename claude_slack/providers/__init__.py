"""Claude CLI provider module."""

from claude_slack.providers.claude_cli import ClaudeCLI, ClaudeResult, parse_output
from claude_slack.providers.command import build_args, probe_args

__all__ = ["ClaudeCLI", "ClaudeResult", "parse_output", "build_args", "probe_args"]
