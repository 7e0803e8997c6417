"""CLI module for claude-slack."""
