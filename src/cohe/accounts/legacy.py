"""Legacy single-account-per-provider configuration.

Older installs keep exactly one credential per provider plus a pointer to the
active provider. This document is separate from the multi-account store and
keeps its own compatibility guarantees, so it is never merged into it.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from structlog import get_logger

from cohe.accounts.files import read_json_document, write_json_atomic
from cohe.accounts.models import Provider, parse_provider


logger = get_logger(__name__)

HISTORY_DAYS = 30


@dataclass
class LegacyProviderConfig:
    api_key: str = ""
    base_url: str = ""
    default_model: str = ""
    models: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiKey": self.api_key,
            "baseUrl": self.base_url,
            "defaultModel": self.default_model,
            "models": self.models,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LegacyProviderConfig":
        return cls(
            api_key=data.get("apiKey", ""),
            base_url=data.get("baseUrl", ""),
            default_model=data.get("defaultModel", ""),
            models=list(data.get("models", [])),
        )


@dataclass
class UsageRecord:
    date: str  # YYYY-MM-DD
    used: float
    limit: float


@dataclass
class LegacyDocument:
    provider: Provider = Provider.ZAI
    providers: dict[Provider, LegacyProviderConfig] = field(default_factory=dict)
    history: dict[Provider, list[UsageRecord]] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        data["provider"] = str(self.provider)
        for provider, config in self.providers.items():
            data[str(provider)] = config.to_dict()
        if self.history:
            data["history"] = {
                str(provider): [
                    {"date": r.date, "used": r.used, "limit": r.limit} for r in records
                ]
                for provider, records in self.history.items()
            }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LegacyDocument":
        known = {"provider", "history", *(str(p) for p in Provider)}
        providers = {
            p: LegacyProviderConfig.from_dict(data[str(p)])
            for p in Provider
            if isinstance(data.get(str(p)), dict)
        }
        history: dict[Provider, list[UsageRecord]] = {}
        for name, records in (data.get("history") or {}).items():
            try:
                history[Provider(name)] = [
                    UsageRecord(date=r["date"], used=r["used"], limit=r["limit"])
                    for r in records
                ]
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("legacy_history_skipped", provider=name, error=str(e))

        try:
            provider = Provider(data.get("provider", Provider.ZAI))
        except ValueError:
            provider = Provider.ZAI

        return cls(
            provider=provider,
            providers=providers,
            history=history,
            extra={k: v for k, v in data.items() if k not in known},
        )


class LegacyProviderStore:
    """JSON file holding the legacy per-provider configuration."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> LegacyDocument:
        data = read_json_document(self.path)
        if data is None:
            return LegacyDocument()
        try:
            return LegacyDocument.from_dict(data)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("legacy_document_invalid", path=str(self.path), error=str(e))
            return LegacyDocument()

    def save(self, document: LegacyDocument) -> None:
        write_json_atomic(self.path, document.to_dict())

    def get_provider_config(self, provider: Provider | str) -> LegacyProviderConfig:
        document = self.load()
        return document.providers.get(parse_provider(provider), LegacyProviderConfig())

    def set_provider_config(
        self,
        provider: Provider | str,
        api_key: str,
        base_url: str,
        default_model: str = "",
    ) -> None:
        document = self.load()
        document.providers[parse_provider(provider)] = LegacyProviderConfig(
            api_key=api_key, base_url=base_url, default_model=default_model
        )
        self.save(document)

    def get_active_provider(self) -> Provider:
        return self.load().provider

    def set_active_provider(self, provider: Provider | str) -> None:
        document = self.load()
        document.provider = parse_provider(provider)
        self.save(document)

    def toggle_provider(self) -> tuple[Provider, Provider] | None:
        """Switch the active provider to the other one.

        Only happens when both providers have an API key configured.

        Returns:
            (previous, new) providers, or None if nothing changed
        """
        document = self.load()
        zai = document.providers.get(Provider.ZAI)
        minimax = document.providers.get(Provider.MINIMAX)
        if not (zai and zai.api_key and minimax and minimax.api_key):
            logger.debug("legacy_toggle_skipped", reason="provider_not_configured")
            return None

        previous = document.provider
        document.provider = (
            Provider.MINIMAX if previous == Provider.ZAI else Provider.ZAI
        )
        self.save(document)
        logger.info(
            "legacy_provider_toggled", previous=str(previous), current=str(document.provider)
        )
        return previous, document.provider

    def record_usage(self, provider: Provider | str, used: float, limit: float) -> None:
        """Record today's usage for a provider, keeping the last 30 days."""
        provider = parse_provider(provider)
        today = datetime.now(UTC).date().isoformat()
        document = self.load()
        records = document.history.setdefault(provider, [])

        existing = next((r for r in records if r.date == today), None)
        if existing is not None:
            existing.used = used
            existing.limit = limit
        else:
            records.append(UsageRecord(date=today, used=used, limit=limit))
            document.history[provider] = records[-HISTORY_DAYS:]

        self.save(document)

    def get_usage_history(self, provider: Provider | str) -> list[UsageRecord]:
        return self.load().history.get(parse_provider(provider), [])
