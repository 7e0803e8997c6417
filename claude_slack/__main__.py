"""
Entry point for running claude-slack as a module: python -m claude_slack
"""

from claude_slack.cli.commands import app

if __name__ == "__main__":
    app()
