"""
claude-slack - Slack agents backed by the Claude command-line assistant.
"""

__version__ = "0.3.0"
__logo__ = "🤖"
