"""Configuration loading utilities."""

import json
import os
from pathlib import Path
from typing import Any, Mapping

from loguru import logger

from claude_slack.config.schema import DATA_DIR, Config

# Environment variable -> (section path, field). Later entries win.
ENV_OVERRIDES: list[tuple[str, tuple[str, ...], str]] = [
    ("CLAUDE_WORKING_DIR", ("agent",), "working_dir"),
    ("CLAUDE_AGENT_WORKING_DIR", ("agent",), "working_dir"),
    ("CLAUDE_AGENT_ALIAS", ("agent",), "alias"),
    ("CLAUDE_BOT_NAME", ("agent",), "bot_name"),
    ("CLAUDE_SESSIONS_DIR", ("agent",), "sessions_dir"),
    ("CLAUDE_BINARY", ("claude",), "binary"),
    ("SLACK_BOT_TOKEN", ("channels", "slack"), "bot_token"),
    ("SLACK_APP_TOKEN", ("channels", "slack"), "app_token"),
    ("SLACK_SIGNING_SECRET", ("channels", "slack"), "signing_secret"),
]

_LEGACY_SLACK_KEYS = {
    "SLACK_BOT_TOKEN": "botToken",
    "SLACK_APP_TOKEN": "appToken",
    "SLACK_SIGNING_SECRET": "signingSecret",
}


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return DATA_DIR / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file or create default.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            data = _migrate_config(data)
            return Config.model_validate(data)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            logger.warning("Using default configuration.")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Save configuration to file."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(by_alias=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def apply_env_overrides(config: Config, environ: Mapping[str, str] | None = None) -> Config:
    """
    Layer agent identity and Slack credentials from the environment on top of
    ``config``. Environment values beat file values, which beat defaults.
    """
    env = os.environ if environ is None else environ
    data = config.model_dump()
    changed = False
    for var, section_path, field_name in ENV_OVERRIDES:
        value = env.get(var)
        if not value:
            continue
        section = data
        for part in section_path:
            section = section[part]
        section[field_name] = value
        changed = True
    return Config.model_validate(data) if changed else config


def _migrate_config(data: dict[str, Any]) -> dict[str, Any]:
    """Migrate old config formats to current."""
    # Flat SLACK_* keys from the old setup wizard -> channels.slack
    legacy = {k: data.pop(k) for k in list(data) if k in _LEGACY_SLACK_KEYS}
    data.pop("savedAt", None)
    if legacy:
        channels = data.setdefault("channels", {})
        slack = channels.setdefault("slack", {})
        for old_key, value in legacy.items():
            new_key = _LEGACY_SLACK_KEYS[old_key]
            if value and new_key not in slack and _snake(new_key) not in slack:
                slack[new_key] = value
    return data


def _snake(name: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name)
