"""JSON document file helpers shared by the account and legacy stores."""

from pathlib import Path
from typing import Any

import orjson
from structlog import get_logger

from cohe.exceptions import StorePersistenceError


logger = get_logger(__name__)


def read_json_document(path: Path) -> dict[str, Any] | None:
    """Read a JSON object from disk.

    Args:
        path: File to read

    Returns:
        The decoded object, or None if the file is missing, unreadable,
        not valid JSON, or not a JSON object
    """
    if not path.exists():
        return None

    try:
        data = orjson.loads(path.read_bytes())
    except orjson.JSONDecodeError:
        logger.warning("store_json_decode_error", path=str(path))
        return None
    except OSError:
        logger.exception("store_file_read_error", path=str(path))
        return None

    if not isinstance(data, dict):
        logger.warning(
            "store_invalid_format",
            path=str(path),
            expected="object",
            got=type(data).__name__,
        )
        return None

    return data


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Write a JSON object to disk via a temp file and rename.

    Raises:
        StorePersistenceError: If the file system rejects the write
    """
    temp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2))
        temp_path.replace(path)
    except OSError as e:
        # OSError: permissions, disk full, path issues
        logger.error("store_save_failed", path=str(path), error=str(e))
        raise StorePersistenceError(str(path), str(e)) from e
