"""Account store: durable account records, active pointers and settings.

Every higher-level operation is a full load -> modify -> save cycle. Callers
that need several changes in one write use :meth:`AccountStore.transaction`.
There is no cross-process locking; two processes racing on the same file
resolve as last writer wins.
"""

import copy
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from structlog import get_logger

from cohe.accounts.files import read_json_document, write_json_atomic
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
    parse_provider,
    utc_now_iso,
)
from cohe.exceptions import AccountNotFoundError


logger = get_logger(__name__)

# Fields callers may change through update_account(); id, provider and
# createdAt are fixed at creation.
_MUTABLE_FIELDS = frozenset(
    {
        "name",
        "api_key",
        "base_url",
        "default_model",
        "group_id",
        "priority",
        "is_active",
        "usage",
    }
)


def sort_by_priority(accounts: list[Account]) -> list[Account]:
    """Stable ascending sort by priority."""
    return sorted(accounts, key=lambda a: a.priority)


class AccountStore(ABC):
    """Load/save interface plus the account operations built on it."""

    @abstractmethod
    def load(self) -> AccountsDocument:
        """Load the document, falling back to defaults."""

    @abstractmethod
    def save(self, document: AccountsDocument) -> None:
        """Persist the document.

        Raises:
            StorePersistenceError: If the document cannot be written
        """

    @contextmanager
    def transaction(self) -> Iterator[AccountsDocument]:
        """Load the document, yield it for modification, then save it.

        Nothing is saved if the block raises or leaves the document unchanged.
        """
        document = self.load()
        before = document.to_dict()
        yield document
        if document.to_dict() != before:
            self.save(document)

    # --- Accounts ---

    def add_account(
        self,
        name: str,
        provider: Provider | str,
        api_key: str,
        base_url: str,
        default_model: str,
        group_id: str | None = None,
        priority: int = 0,
    ) -> Account:
        """Create an account; it becomes active if nothing else is.

        Raises:
            InvalidProviderError: If the provider is not supported
        """
        account = Account(
            id=generate_account_id(),
            name=name,
            provider=parse_provider(provider),
            api_key=api_key,
            base_url=base_url,
            default_model=default_model,
            group_id=group_id or None,
            priority=priority,
        )

        with self.transaction() as document:
            document.accounts[account.id] = account
            if not document.active_account_id:
                document.set_active_pointers(account.id)

        logger.info("account_added", account=account.id, provider=str(account.provider))
        return account

    def update_account(self, account_id: str, **changes: Any) -> Account | None:
        """Apply field changes to an account and stamp lastUsed.

        Returns:
            The updated account, or None if it does not exist

        Raises:
            ValueError: If a change targets an immutable or unknown field
        """
        invalid = set(changes) - _MUTABLE_FIELDS
        if invalid:
            raise ValueError(f"Cannot update account fields: {sorted(invalid)}")

        with self.transaction() as document:
            account = document.accounts.get(account_id)
            if account is None:
                logger.warning("unknown_account_update", account=account_id)
                return None
            for name, value in changes.items():
                setattr(account, name, value)
            account.last_used = utc_now_iso()

        logger.debug("account_updated", account=account_id, fields=sorted(changes))
        return account

    def delete_account(self, account_id: str) -> bool:
        """Delete an account, repairing any pointer that referenced it.

        Returns:
            True if deleted, False if not found
        """
        with self.transaction() as document:
            if account_id not in document.accounts:
                return False

            del document.accounts[account_id]
            replacement = next(iter(document.accounts), None)

            if document.active_account_id == account_id:
                document.active_account_id = replacement
            if document.active_model_provider_id == account_id:
                document.active_model_provider_id = replacement
            if document.active_mcp_provider_id == account_id:
                document.active_mcp_provider_id = replacement

        logger.info("account_removed", account=account_id, active=replacement)
        return True

    def get_account(self, account_id: str) -> Account | None:
        return self.load().accounts.get(account_id)

    def require_account(self, account_id: str) -> Account:
        """Like :meth:`get_account`, for callers that cannot continue without it.

        Raises:
            AccountNotFoundError: If the id is not in the store
        """
        account = self.get_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def get_active_account(self) -> Account | None:
        return self.load().active_account

    def list_accounts(self) -> list[Account]:
        """All accounts, priority ascending."""
        return sort_by_priority(list(self.load().accounts.values()))

    def list_active_accounts(self) -> list[Account]:
        """Accounts that participate in rotation, priority ascending."""
        return [a for a in self.list_accounts() if a.is_active]

    def set_active(self, account_id: str) -> bool:
        """Make an account active for both the model and MCP roles.

        Returns:
            True if switched, False if the account does not exist
        """
        with self.transaction() as document:
            account = document.accounts.get(account_id)
            if account is None:
                return False
            document.set_active_pointers(account_id)
            account.last_used = utc_now_iso()

        logger.info("account_switched", account=account_id)
        return True

    def record_usage(self, usages: dict[str, tuple[float, float]]) -> None:
        """Refresh the cached usage of several accounts in one write.

        Args:
            usages: Account id -> (used, limit) from successful fetches
        """
        if not usages:
            return
        now = utc_now_iso()
        with self.transaction() as document:
            for account_id, (used, limit) in usages.items():
                account = document.accounts.get(account_id)
                if account is not None:
                    account.usage = CachedUsage(used=used, limit=limit, last_updated=now)

    # --- Rotation settings ---

    def configure_rotation(
        self,
        enabled: bool,
        strategy: RotationStrategy | str | None = None,
        cross_provider: bool | None = None,
    ) -> RotationConfig:
        with self.transaction() as document:
            document.rotation.enabled = enabled
            if strategy:
                document.rotation.strategy = RotationStrategy(strategy)
            if cross_provider is not None:
                document.rotation.cross_provider = cross_provider
            rotation = document.rotation

        logger.info(
            "rotation_configured",
            enabled=rotation.enabled,
            strategy=str(rotation.strategy),
            cross_provider=rotation.cross_provider,
        )
        return rotation

    # --- Alerts ---

    def add_alert(self, alert_type: AlertType | str, threshold: float) -> Alert:
        alert = Alert(
            id=f"alert_{generate_account_id().split('_', 1)[1]}",
            type=AlertType(alert_type),
            threshold=threshold,
        )
        with self.transaction() as document:
            document.alerts.append(alert)
        logger.info("alert_added", alert=alert.id, type=str(alert.type), threshold=threshold)
        return alert

    def update_alert(self, alert_id: str, **changes: Any) -> Alert | None:
        with self.transaction() as document:
            alert = next((a for a in document.alerts if a.id == alert_id), None)
            if alert is None:
                return None
            for name, value in changes.items():
                setattr(alert, name, value)
        return alert


class JsonAccountStore(AccountStore):
    """Account store backed by a JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> AccountsDocument:
        data = read_json_document(self.path)
        if data is None:
            return AccountsDocument()

        try:
            return AccountsDocument.from_dict(data)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("store_document_invalid", path=str(self.path), error=str(e))
            return AccountsDocument()

    def save(self, document: AccountsDocument) -> None:
        write_json_atomic(self.path, document.to_dict())
        logger.debug("store_saved", path=str(self.path), count=len(document.accounts))


class InMemoryAccountStore(AccountStore):
    """Account store held in memory; each load returns an independent copy."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(data) if data else {}
        self.save_count = 0

    def load(self) -> AccountsDocument:
        return AccountsDocument.from_dict(copy.deepcopy(self._data))

    def save(self, document: AccountsDocument) -> None:
        self._data = copy.deepcopy(document.to_dict())
        self.save_count += 1

    def dump(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)
