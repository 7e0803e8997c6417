"""Configuration module for claude-slack."""

from claude_slack.config.loader import apply_env_overrides, get_config_path, load_config
from claude_slack.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path", "apply_env_overrides"]
