"""Exception hierarchy for cohe.

All exceptions use proper exception chaining with the `from` keyword.
Network problems never surface as exceptions past the usage fetcher; what
remains here is configuration absence and persistence failure.
"""

from enum import StrEnum
from typing import Any


class ErrorType(StrEnum):
    """Error type codes used in structured log events and CLI output."""

    CONFIGURATION = "configuration_error"
    NOT_FOUND = "not_found_error"
    PERSISTENCE = "persistence_error"
    INVALID_REQUEST = "invalid_request_error"


class CoheError(Exception):
    """Base exception for all cohe errors."""

    def __init__(
        self,
        message: str,
        *,
        error_type: ErrorType = ErrorType.CONFIGURATION,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.details = details or {}


class ConfigurationError(CoheError):
    """Raised when settings cannot be loaded or are invalid."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message, error_type=ErrorType.CONFIGURATION, details=details
        )


class AccountNotFoundError(CoheError):
    """Raised when an account id is not present in the store."""

    def __init__(self, account_id: str) -> None:
        super().__init__(
            f"Account '{account_id}' not found",
            error_type=ErrorType.NOT_FOUND,
            details={"account_id": account_id},
        )
        self.account_id = account_id


class InvalidProviderError(CoheError):
    """Raised for a provider name outside the supported set."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            f"Unknown provider '{provider}': expected zai or minimax",
            error_type=ErrorType.INVALID_REQUEST,
            details={"provider": provider},
        )
        self.provider = provider


class StorePersistenceError(CoheError):
    """Raised when a store document cannot be written.

    This is the one failure the CLI treats as fatal: nothing further can be
    done safely once the document could not be persisted.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            f"Failed to write {path}: {reason}",
            error_type=ErrorType.PERSISTENCE,
            details={"path": path},
        )
        self.path = path
