"""Settings configuration for cohe."""

from pathlib import Path

import structlog
from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cohe.exceptions import ConfigurationError


__all__ = [
    "DEFAULT_ACCOUNTS_PATH",
    "DEFAULT_CLAUDE_SETTINGS_PATH",
    "DEFAULT_LEGACY_PATH",
    "DEFAULT_USAGE_TIMEOUT_SECONDS",
    "MINIMAX_USAGE_URL",
    "Settings",
    "ZAI_USAGE_URL",
    "get_settings",
]

logger = structlog.get_logger(__name__)

DEFAULT_ACCOUNTS_PATH = Path("~/.claude/cohe.json")
DEFAULT_LEGACY_PATH = Path("~/.claude/cohe-legacy.json")
DEFAULT_CLAUDE_SETTINGS_PATH = Path("~/.claude/settings.json")

DEFAULT_USAGE_TIMEOUT_SECONDS = 10.0
ZAI_USAGE_URL = "https://api.z.ai/api/monitor/usage/quota/limit"
MINIMAX_USAGE_URL = "https://platform.minimax.io/v1/api/openplatform/coding_plan/remains"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """
    Configuration settings for cohe.

    Values come from environment variables prefixed with ``COHE_`` and from a
    ``.env`` file in the working directory. Environment variables take
    precedence over the .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="COHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    accounts_file: Path = Field(
        default=DEFAULT_ACCOUNTS_PATH,
        description="Multi-account store document",
    )
    legacy_file: Path = Field(
        default=DEFAULT_LEGACY_PATH,
        description="Legacy single-account-per-provider document",
    )
    claude_settings_file: Path = Field(
        default=DEFAULT_CLAUDE_SETTINGS_PATH,
        description="Claude settings file updated by the session hook",
    )

    usage_timeout_seconds: float = Field(
        default=DEFAULT_USAGE_TIMEOUT_SECONDS,
        gt=0,
        description="Timeout for a single provider usage request",
    )
    retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts made by the retry wrapper before giving up",
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Fixed delay between retry attempts",
    )

    zai_usage_url: str = Field(
        default=ZAI_USAGE_URL,
        description="Z.AI quota endpoint",
    )
    minimax_usage_url: str = Field(
        default=MINIMAX_USAGE_URL,
        description="MiniMax coding plan remains endpoint",
    )
    minimax_group_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("COHE_MINIMAX_GROUP_ID", "MINIMAX_GROUP_ID"),
        description="Fallback GroupId for MiniMax accounts without one",
    )

    log_level: str = Field(default="WARNING", description="Logging level")

    @field_validator("accounts_file", "legacy_file", "claude_settings_file", mode="after")
    @classmethod
    def expand_path(cls, v: Path) -> Path:
        return v.expanduser()

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = str(v).upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Invalid log level '{v}': expected one of {_LOG_LEVELS}")
        return level


def get_settings(**overrides: object) -> Settings:
    """Load settings from the environment.

    Args:
        **overrides: Explicit values that take precedence over the environment

    Returns:
        Settings instance

    Raises:
        ConfigurationError: If a value fails validation
    """
    try:
        return Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as e:
        logger.error("settings_invalid", error=str(e))
        raise ConfigurationError(f"Configuration error: {e}") from e
