"""Tests for cohe settings."""

from pathlib import Path

import pytest

from cohe.config.settings import MINIMAX_USAGE_URL, ZAI_USAGE_URL, Settings, get_settings
from cohe.exceptions import ConfigurationError
from cohe.usage.fetcher import UsageFetcher


@pytest.mark.unit
class TestSettings:
    def test_defaults(self, monkeypatch) -> None:
        monkeypatch.delenv("COHE_ACCOUNTS_FILE", raising=False)
        monkeypatch.delenv("MINIMAX_GROUP_ID", raising=False)
        monkeypatch.delenv("COHE_MINIMAX_GROUP_ID", raising=False)

        settings = Settings(_env_file=None)

        assert settings.accounts_file == Path("~/.claude/cohe.json").expanduser()
        assert settings.usage_timeout_seconds == 10
        assert settings.retry_attempts == 3
        assert settings.retry_delay_seconds == 1.0
        assert settings.minimax_group_id is None

    def test_environment_overrides(self, monkeypatch, tmp_path: Path) -> None:
        monkeypatch.setenv("COHE_ACCOUNTS_FILE", str(tmp_path / "accounts.json"))
        monkeypatch.setenv("COHE_RETRY_ATTEMPTS", "5")
        monkeypatch.setenv("COHE_LOG_LEVEL", "debug")

        settings = get_settings()

        assert settings.accounts_file == tmp_path / "accounts.json"
        assert settings.retry_attempts == 5
        assert settings.log_level == "DEBUG"

    def test_unprefixed_group_id(self, monkeypatch) -> None:
        monkeypatch.delenv("COHE_MINIMAX_GROUP_ID", raising=False)
        monkeypatch.setenv("MINIMAX_GROUP_ID", "group-42")

        assert get_settings().minimax_group_id == "group-42"

    def test_invalid_value_raises_configuration_error(self, monkeypatch) -> None:
        monkeypatch.setenv("COHE_LOG_LEVEL", "LOUD")

        with pytest.raises(ConfigurationError):
            get_settings()

    def test_zero_attempts_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            get_settings(retry_attempts=0)

    def test_endpoint_defaults_match_fetcher(self, monkeypatch) -> None:
        monkeypatch.delenv("COHE_ZAI_USAGE_URL", raising=False)
        monkeypatch.delenv("COHE_MINIMAX_USAGE_URL", raising=False)

        from_settings = UsageFetcher.from_settings(Settings(_env_file=None))
        direct = UsageFetcher()

        assert from_settings.zai_url == direct.zai_url == ZAI_USAGE_URL
        assert from_settings.minimax_url == direct.minimax_url == MINIMAX_USAGE_URL
        assert from_settings.timeout == direct.timeout
