"""Account records and the persisted store document.

Persisted keys are camelCase so documents written by earlier releases of the
tool load unchanged.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import shortuuid
from structlog import get_logger

from cohe.exceptions import InvalidProviderError


logger = get_logger(__name__)

DOCUMENT_VERSION = "2.0.0"

_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


class Provider(StrEnum):
    """Supported LLM providers."""

    ZAI = "zai"
    MINIMAX = "minimax"


class RotationStrategy(StrEnum):
    """Account rotation algorithms."""

    ROUND_ROBIN = "round-robin"
    LEAST_USED = "least-used"
    PRIORITY = "priority"
    RANDOM = "random"


class AlertType(StrEnum):
    """Alert rule kinds."""

    USAGE = "usage"  # threshold is a percentage used
    QUOTA = "quota"  # threshold is an absolute remaining amount


# Anthropic-compatible endpoint and default model per provider.
PROVIDER_DEFAULTS: dict[Provider, tuple[str, str]] = {
    Provider.ZAI: ("https://api.z.ai/api/anthropic", "GLM-4.7"),
    Provider.MINIMAX: ("https://api.minimax.io/anthropic", "MiniMax-M2.1"),
}


def parse_provider(value: Provider | str) -> Provider:
    """Convert a provider name, rejecting anything but zai and minimax.

    Raises:
        InvalidProviderError: If the name is not a supported provider
    """
    try:
        return Provider(value)
    except ValueError as e:
        raise InvalidProviderError(str(value)) from e


def utc_now_iso() -> str:
    """Current time as an ISO8601 string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def generate_account_id() -> str:
    """Generate an account id: millisecond timestamp plus a random suffix."""
    now_ms = int(datetime.now(UTC).timestamp() * 1000)
    suffix = shortuuid.ShortUUID(alphabet=_ID_ALPHABET).random(length=7)
    return f"acc_{now_ms}_{suffix}"


@dataclass
class CachedUsage:
    """Last known usage for an account, written only by successful fetches."""

    used: float
    limit: float
    last_updated: str

    @property
    def percent_used(self) -> float:
        if self.limit <= 0:
            return 0.0
        return (self.used / self.limit) * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "used": self.used,
            "limit": self.limit,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CachedUsage":
        return cls(
            used=data.get("used", 0),
            limit=data.get("limit", 0),
            last_updated=data.get("lastUpdated", ""),
        )


@dataclass
class Account:
    """One stored credential bound to a provider."""

    id: str
    name: str
    provider: Provider
    api_key: str
    base_url: str
    default_model: str
    priority: int = 0
    is_active: bool = True
    created_at: str = field(default_factory=utc_now_iso)
    last_used: str | None = None
    group_id: str | None = None
    usage: CachedUsage | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "provider": str(self.provider),
            "apiKey": self.api_key,
            "baseUrl": self.base_url,
            "defaultModel": self.default_model,
            "priority": self.priority,
            "isActive": self.is_active,
            "createdAt": self.created_at,
        }
        if self.last_used is not None:
            data["lastUsed"] = self.last_used
        if self.group_id:
            data["groupId"] = self.group_id
        if self.usage is not None:
            data["usage"] = self.usage.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Account":
        """Create from dictionary.

        Raises:
            KeyError: If a required field is missing
            ValueError: If the provider is not supported
        """
        usage = data.get("usage")
        return cls(
            id=data["id"],
            name=data["name"],
            provider=Provider(data["provider"]),
            api_key=data.get("apiKey", ""),
            base_url=data.get("baseUrl", ""),
            default_model=data.get("defaultModel", ""),
            priority=int(data.get("priority", 0)),
            is_active=bool(data.get("isActive", True)),
            created_at=data.get("createdAt") or utc_now_iso(),
            last_used=data.get("lastUsed"),
            group_id=data.get("groupId") or None,
            usage=CachedUsage.from_dict(usage) if isinstance(usage, dict) else None,
        )


@dataclass
class RotationConfig:
    """Process-wide rotation policy."""

    enabled: bool = True
    strategy: RotationStrategy = RotationStrategy.LEAST_USED
    cross_provider: bool = True
    max_uses_per_key: int | None = None
    last_rotation: str | None = None  # advisory only

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "enabled": self.enabled,
            "strategy": str(self.strategy),
            "crossProvider": self.cross_provider,
        }
        if self.max_uses_per_key is not None:
            data["maxUsesPerKey"] = self.max_uses_per_key
        if self.last_rotation is not None:
            data["lastRotation"] = self.last_rotation
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RotationConfig":
        return cls(
            enabled=bool(data.get("enabled", True)),
            strategy=RotationStrategy(data.get("strategy", RotationStrategy.LEAST_USED)),
            cross_provider=bool(data.get("crossProvider", True)),
            max_uses_per_key=data.get("maxUsesPerKey"),
            last_rotation=data.get("lastRotation"),
        )


@dataclass
class Alert:
    """A threshold rule evaluated against a usage snapshot."""

    id: str
    type: AlertType
    threshold: float
    enabled: bool = True
    last_triggered: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": str(self.type),
            "threshold": self.threshold,
            "enabled": self.enabled,
        }
        if self.last_triggered is not None:
            data["lastTriggered"] = self.last_triggered
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Alert":
        return cls(
            id=data["id"],
            type=AlertType(data["type"]),
            threshold=data["threshold"],
            enabled=bool(data.get("enabled", True)),
            last_triggered=data.get("lastTriggered"),
        )


def default_alerts() -> list[Alert]:
    return [
        Alert(id="usage-80", type=AlertType.USAGE, threshold=80),
        Alert(id="usage-90", type=AlertType.USAGE, threshold=90),
        Alert(id="quota-low", type=AlertType.QUOTA, threshold=10),
    ]


def default_notifications() -> dict[str, Any]:
    return {"method": "console", "enabled": True}


def default_dashboard() -> dict[str, Any]:
    return {"port": 3456, "host": "localhost", "enabled": False}


def _section_or_default(
    data: dict[str, Any], key: str, default: Callable[[], dict[str, Any]]
) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        return default()
    if not isinstance(value, dict):
        logger.warning("invalid_section_replaced", section=key)
        return default()
    return value


# Top-level keys owned by this module; anything else is carried through untouched.
_KNOWN_KEYS = frozenset(
    {
        "version",
        "accounts",
        "activeAccountId",
        "activeModelProviderId",
        "activeMcpProviderId",
        "alerts",
        "notifications",
        "dashboard",
        "rotation",
    }
)


@dataclass
class AccountsDocument:
    """The persisted multi-account store document.

    ``notifications`` and ``dashboard`` belong to collaborators outside the
    rotation core and are kept as plain dictionaries.
    """

    version: str = DOCUMENT_VERSION
    accounts: dict[str, Account] = field(default_factory=dict)
    active_account_id: str | None = None
    active_model_provider_id: str | None = None
    active_mcp_provider_id: str | None = None
    alerts: list[Alert] = field(default_factory=default_alerts)
    notifications: dict[str, Any] = field(default_factory=default_notifications)
    dashboard: dict[str, Any] = field(default_factory=default_dashboard)
    rotation: RotationConfig = field(default_factory=RotationConfig)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def active_account(self) -> Account | None:
        if self.active_account_id is None:
            return None
        return self.accounts.get(self.active_account_id)

    def set_active_pointers(self, account_id: str | None) -> None:
        """Point the generic, model and MCP selectors at the same account."""
        self.active_account_id = account_id
        self.active_model_provider_id = account_id
        self.active_mcp_provider_id = account_id

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = dict(self.extra)
        data.update(
            {
                "version": self.version,
                "accounts": {
                    account_id: account.to_dict()
                    for account_id, account in self.accounts.items()
                },
                "activeAccountId": self.active_account_id,
                "activeModelProviderId": self.active_model_provider_id,
                "activeMcpProviderId": self.active_mcp_provider_id,
                "alerts": [alert.to_dict() for alert in self.alerts],
                "notifications": self.notifications,
                "dashboard": self.dashboard,
                "rotation": self.rotation.to_dict(),
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AccountsDocument":
        """Create from a stored document merged over the defaults.

        Each top-level section falls back to its own default when it has the
        wrong shape; individual invalid accounts or alerts are skipped. All
        of these are logged as warnings.
        """
        accounts_data = data.get("accounts") or {}
        if not isinstance(accounts_data, dict):
            logger.warning("invalid_section_replaced", section="accounts")
            accounts_data = {}

        accounts: dict[str, Account] = {}
        for account_id, account_data in accounts_data.items():
            try:
                account = Account.from_dict({"id": account_id, **account_data})
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("invalid_account_skipped", account=account_id, error=str(e))
                continue
            accounts[account.id] = account

        alerts_data = data.get("alerts")
        if alerts_data is None:
            alerts = default_alerts()
        elif isinstance(alerts_data, list):
            alerts = []
            for alert_data in alerts_data:
                try:
                    alerts.append(Alert.from_dict(alert_data))
                except (KeyError, ValueError, TypeError) as e:
                    logger.warning("invalid_alert_skipped", alert=alert_data, error=str(e))
        else:
            logger.warning("invalid_section_replaced", section="alerts")
            alerts = default_alerts()

        rotation_data = data.get("rotation") or {}
        try:
            rotation = RotationConfig.from_dict(rotation_data)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("invalid_section_replaced", section="rotation", error=str(e))
            rotation = RotationConfig()

        return cls(
            version=data.get("version", DOCUMENT_VERSION),
            accounts=accounts,
            active_account_id=data.get("activeAccountId"),
            active_model_provider_id=data.get("activeModelProviderId"),
            active_mcp_provider_id=data.get("activeMcpProviderId"),
            alerts=alerts,
            notifications=_section_or_default(data, "notifications", default_notifications),
            dashboard=_section_or_default(data, "dashboard", default_dashboard),
            rotation=rotation,
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )
