"""Account records, the multi-account store and the legacy provider store."""

from cohe.accounts.legacy import LegacyDocument, LegacyProviderConfig, LegacyProviderStore
from cohe.accounts.models import (
    Account,
    AccountsDocument,
    Alert,
    AlertType,
    CachedUsage,
    Provider,
    RotationConfig,
    RotationStrategy,
    generate_account_id,
)
from cohe.accounts.store import AccountStore, InMemoryAccountStore, JsonAccountStore


__all__ = [
    "Account",
    "AccountStore",
    "AccountsDocument",
    "Alert",
    "AlertType",
    "CachedUsage",
    "InMemoryAccountStore",
    "JsonAccountStore",
    "LegacyDocument",
    "LegacyProviderConfig",
    "LegacyProviderStore",
    "Provider",
    "RotationConfig",
    "RotationStrategy",
    "generate_account_id",
]
