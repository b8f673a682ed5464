"""
Durable on-device storage: keyed string blobs, one file per key.

Callers own the schema of what they store; this layer only moves text.
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from errors import StorageCorruption

logger = logging.getLogger(__name__)

CART_KEY = "cart"
RECENTLY_VIEWED_KEY = "recentlyViewed"


class MemoryStorage:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStorage:
    """Stores each key as ``<directory>/<key>.json``.

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace`` so a reader never sees a half-written blob.
    """

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            # unreadable counts as absent
            logger.warning("Device storage read failed", extra={"key": key, "error": str(exc)})
            return None

    def set_item(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp, self._path(key))
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass


def decode_records(key: str, raw: str, adapter: TypeAdapter) -> list:
    try:
        return adapter.validate_json(raw)
    except PydanticValidationError as exc:
        raise StorageCorruption(key, f"{exc.error_count()} invalid value(s)") from exc


def load_records(storage, key: str, adapter: TypeAdapter) -> list:
    """Read a persisted JSON array; absent or malformed content is an empty list."""
    raw = storage.get_item(key)
    if raw is None:
        return []
    try:
        return decode_records(key, raw, adapter)
    except StorageCorruption as exc:
        logger.warning("Discarding corrupt device storage", extra={"key": key, "reason": exc.reason})
        return []


def save_records(storage, key: str, adapter: TypeAdapter, records: list) -> None:
    storage.set_item(key, adapter.dump_json(records).decode("utf-8"))
