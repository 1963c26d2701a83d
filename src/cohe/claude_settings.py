"""Apply the active account's credentials to the Claude settings file."""

from pathlib import Path
from typing import Any

from structlog import get_logger

from cohe.accounts.files import read_json_document, write_json_atomic
from cohe.accounts.models import Account


logger = get_logger(__name__)

API_TIMEOUT_MS = "3000000"


def build_account_env(account: Account) -> dict[str, Any]:
    """Environment block pointing the Claude CLI at ``account``."""
    return {
        "ANTHROPIC_AUTH_TOKEN": account.api_key,
        "ANTHROPIC_BASE_URL": account.base_url,
        "ANTHROPIC_MODEL": account.default_model,
        "API_TIMEOUT_MS": API_TIMEOUT_MS,
        "CLAUDE_CODE_DISABLE_NONESSENTIAL_TRAFFIC": 1,
    }


def apply_account_to_settings(path: Path, account: Account) -> bool:
    """Replace the ``env`` section of an existing settings file.

    Other keys are preserved. A missing or unreadable file is left alone.

    Returns:
        True if the file was updated

    Raises:
        StorePersistenceError: If the updated file cannot be written
    """
    path = Path(path).expanduser()
    settings = read_json_document(path)
    if settings is None:
        logger.debug("claude_settings_missing", path=str(path))
        return False

    settings["env"] = build_account_env(account)
    write_json_atomic(path, settings)
    logger.info("claude_settings_updated", path=str(path), account=account.id)
    return True
