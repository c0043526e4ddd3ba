"""
Durable key/value stores for the session pair.

Why: The console keeps exactly two entries across restarts, the bearer token
and the serialized user identity. Both are written together and removed
together by the session store; these classes only provide the storage.

- MemoryStorage: process-local, for tests and ephemeral consoles.
- JsonFileStorage: one JSON object in a file (mode 0600), atomically
  replaced on every write.

Security: The file holds a bearer token. It is created user-readable only
and never logged.
"""
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)

CREDENTIAL_KEY = "token"
USER_KEY = "user"


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStorage:
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class JsonFileStorage:
    """File-backed key/value store.

    Parameters
    ----------
    path:
        Location of the JSON file. Parent directories are created on first
        write. An unreadable or corrupt file reads as empty.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def _read(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("session_file_unreadable", path=str(self.path), error=exc.__class__.__name__)
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("session_file_corrupt", path=str(self.path))
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: Dict[str, str]) -> None:
        if not data:
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".session-", dir=str(self.path.parent))
        try:
            os.chmod(tmp, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp, self.path)
        except BaseException:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            data.pop(key)
            self._write(data)
