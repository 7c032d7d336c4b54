"""Configuration for the PR relay service."""

import json
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pr_relay.core.exceptions import ConfigurationError

BUNDLED_TEMPLATES = Path(__file__).parent / "templates" / "messages.json"


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    environment: str = Field(default="development")
    debug: bool = Field(default=True)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)

    # GitHub
    github_webhook_secret: Optional[str] = Field(default=None)

    # Chat platform
    chat_platform: Literal["discord", "slack"] = Field(default="discord")
    discord_bot_token: Optional[str] = Field(default=None)
    discord_channel_id: Optional[str] = Field(default=None)
    slack_bot_token: Optional[str] = Field(default=None)
    slack_channel_id: Optional[str] = Field(default=None)

    # State storage
    state_storage_type: Literal["file", "memory"] = Field(default="file")
    state_file_path: str = Field(default="data/pr-state.json")
    state_flush_delay: float = Field(default=1.0)

    # Notifications
    template_path: Optional[str] = Field(default=None)
    user_mappings_path: str = Field(default="config/user-mappings.json")

    # Reconciliation
    creation_wait_timeout: float = Field(default=5.0)

    @property
    def channel_id(self) -> Optional[str]:
        """Channel that PR notifications are posted to on the selected platform."""
        if self.chat_platform == "slack":
            return self.slack_channel_id
        return self.discord_channel_id

    @property
    def chat_token(self) -> Optional[str]:
        if self.chat_platform == "slack":
            return self.slack_bot_token
        return self.discord_bot_token

    @property
    def templates_file(self) -> Path:
        return Path(self.template_path) if self.template_path else BUNDLED_TEMPLATES


settings = Settings()


def validate_settings(config: Settings) -> None:
    """Fail fast when production is missing required credentials."""
    if config.environment != "production":
        return

    errors = []
    platform = config.chat_platform.upper()

    if not config.github_webhook_secret:
        errors.append("GITHUB_WEBHOOK_SECRET is required in production")
    if not config.chat_token:
        errors.append(f"{platform}_BOT_TOKEN is required in production")
    if not config.channel_id:
        errors.append(f"{platform}_CHANNEL_ID is required in production")

    if errors:
        raise ConfigurationError("Configuration validation failed:\n" + "\n".join(errors))


def load_user_mappings(path: str) -> dict[str, str]:
    """Load GitHub login -> chat user id mappings from a JSON file.

    A missing file means no mappings; a malformed one is a configuration error.
    """
    try:
        content = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Failed to load user mappings from {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"User mappings in {path} must be a JSON object")

    return {str(login): str(chat_id) for login, chat_id in data.items() if not login.startswith("_")}
