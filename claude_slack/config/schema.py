"""Configuration schema using Pydantic."""

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DATA_DIR = Path.home() / ".claude-slack"


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SlackConfig(Base):
    """Slack channel configuration (Socket Mode)."""

    enabled: bool = True
    bot_token: str = ""  # xoxb-...
    app_token: str = ""  # xapp-...
    signing_secret: str = ""
    allow_from: list[str] = Field(default_factory=list)  # Allowed Slack user ids; empty = everyone

    @field_validator("bot_token")
    @classmethod
    def _check_bot_token(cls, value: str) -> str:
        if value and not value.startswith("xoxb-"):
            raise ValueError('Slack bot token must start with "xoxb-"')
        return value

    @field_validator("app_token")
    @classmethod
    def _check_app_token(cls, value: str) -> str:
        if value and not value.startswith("xapp-"):
            raise ValueError('Slack app token must start with "xapp-"')
        return value

    def missing_credentials(self) -> list[str]:
        """Names of the credentials Socket Mode needs but are not set."""
        required = {
            "SLACK_BOT_TOKEN": self.bot_token,
            "SLACK_APP_TOKEN": self.app_token,
            "SLACK_SIGNING_SECRET": self.signing_secret,
        }
        return [name for name, value in required.items() if not value]


class ChannelsConfig(Base):
    """Configuration for chat channels."""

    slack: SlackConfig = Field(default_factory=SlackConfig)


class AgentConfig(Base):
    """Identity of this agent process."""

    alias: str = ""
    bot_name: str = "Claude"
    working_dir: str = ""  # Empty = current directory
    sessions_dir: str = ""  # Empty = derived from alias

    @field_validator("alias")
    @classmethod
    def _check_alias(cls, value: str) -> str:
        value = value.strip()
        if value and not re.fullmatch(r"[A-Za-z0-9][A-Za-z0-9_-]*", value):
            raise ValueError("Agent alias may only contain letters, digits, '-' and '_'")
        return value


class ClaudeConfig(Base):
    """How the Claude CLI is invoked."""

    binary: str = "claude"
    timeout_seconds: float = Field(default=60.0, gt=0)
    mcp_server: str | None = "claude-fleet"
    mcp_probe_ttl_seconds: float = Field(default=300.0, ge=0)


class Config(Base):
    """Root configuration for claude-slack."""

    agent: AgentConfig = Field(default_factory=AgentConfig)
    claude: ClaudeConfig = Field(default_factory=ClaudeConfig)
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)

    @property
    def working_path(self) -> Path:
        """Directory the Claude CLI runs in."""
        if self.agent.working_dir:
            return Path(self.agent.working_dir).expanduser().resolve()
        return Path.cwd()

    @property
    def sessions_path(self) -> Path:
        """Session store directory, namespaced per agent alias."""
        if self.agent.sessions_dir:
            return Path(self.agent.sessions_dir).expanduser()
        if self.agent.alias:
            return DATA_DIR / "agents" / self.agent.alias / "sessions"
        return DATA_DIR / "sessions"
