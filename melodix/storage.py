"""
Storage - Atomic JSON files and key-value blob stores.

Writes are atomic: data goes to a temp file first and is moved into
place with os.replace, so a crash never leaves a half-written file.
A leftover temp file from an interrupted save is recovered on read.
"""
import os
import json
import logging
import threading
from pathlib import Path
from typing import Optional, Dict

from .errors import PersistenceError

logger = logging.getLogger(__name__)


def temp_path_for(path: Path) -> Path:
    return path.with_suffix(path.suffix + '.tmp')


def recover_temp(path: Path):
    """Promote a complete temp file left behind by an interrupted save."""
    temp = temp_path_for(path)
    if not temp.exists():
        return
    try:
        json.loads(temp.read_text(encoding='utf-8'))
    except (json.JSONDecodeError, IOError, OSError):
        logger.warning(f'Discarding incomplete temp file: {temp}')
        temp.unlink(missing_ok=True)
        return
    os.replace(temp, path)
    logger.info(f'Recovered {path} from temp file')


def read_json(path: Path, default=None):
    """Read a JSON document, returning default when missing or invalid."""
    recover_temp(path)
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as e:
        logger.warning(f'Invalid JSON in {path}: {e}')
        return default
    except (IOError, OSError) as e:
        logger.error(f'Cannot read {path}: {e}', exc_info=True)
        return default


def write_json_atomic(path: Path, data):
    """Write a JSON document atomically. Raises PersistenceError on failure."""
    temp = temp_path_for(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp.write_text(json.dumps(data, indent=2), encoding='utf-8')
        os.replace(temp, path)
    except (IOError, OSError) as e:
        logger.error(f'Cannot write {path}: {e}', exc_info=True)
        raise PersistenceError(f'Could not write {path}: {e}') from e


class MemoryStore:
    """In-memory blob store (tests, mock mode)."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, blob: str):
        self._data[key] = blob


class JsonFileStore:
    """
    Blob store backed by a single JSON object on disk.

    Each key maps to one string blob inside the file.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def read(self, key: str) -> Optional[str]:
        with self._lock:
            data = read_json(self.path, {})
            return data.get(key) if isinstance(data, dict) else None

    def write(self, key: str, blob: str):
        with self._lock:
            data = read_json(self.path, {})
            if not isinstance(data, dict):
                data = {}
            data[key] = blob
            write_json_atomic(self.path, data)
