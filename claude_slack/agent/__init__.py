"""Agent core module."""

from claude_slack.agent.client import ClaudeClient, SessionStatus
from claude_slack.agent.formatter import format_response
from claude_slack.agent.loop import AgentLoop

__all__ = ["AgentLoop", "ClaudeClient", "SessionStatus", "format_response"]
