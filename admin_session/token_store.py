"""
Credential store for the admin session: access + refresh token pair.
Values live in a small key/value storage (in-memory, or a JSON file standing in
for browser local storage). No decisions are made here; see staleness.py.
"""
import json
import logging
import os
from pathlib import Path

from admin_session.config import ACCESS_KEY, REFRESH_KEY

logger = logging.getLogger(__name__)


class MemoryStorage:
    """Process-local key/value storage."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def update(self, values: dict[str, str]) -> None:
        self._data.update(values)

    def remove(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)


class FileStorage(MemoryStorage):
    """
    JSON-file storage. Every update rewrites the whole file (temp file + os.replace),
    so a pair written together is never observed half-written.
    A missing, unreadable or corrupt file reads as empty; a failed write is logged and
    the in-process copy stays authoritative.
    """

    def __init__(self, path: str | os.PathLike) -> None:
        super().__init__()
        self.path = Path(path).expanduser()
        self._data = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable token storage %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring token storage %s: not a JSON object", self.path)
            return {}
        return {k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)}

    def _flush(self) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(self._data, sort_keys=True), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            logger.warning("Could not save token storage to %s: %s", self.path, e)

    def update(self, values: dict[str, str]) -> None:
        super().update(values)
        self._flush()

    def remove(self, *keys: str) -> None:
        super().remove(*keys)
        self._flush()


class TokenStore:
    """Access/refresh pair on top of a storage backend. Both slots are written together."""

    def __init__(self, storage: MemoryStorage | None = None) -> None:
        self.storage = storage if storage is not None else MemoryStorage()

    def set_tokens(self, access: str, refresh: str) -> None:
        if not access or not refresh:
            raise ValueError("access and refresh tokens are both required")
        self.storage.update({ACCESS_KEY: access, REFRESH_KEY: refresh})

    def get_access_token(self) -> str | None:
        return self.storage.get(ACCESS_KEY) or None

    def get_refresh_token(self) -> str | None:
        return self.storage.get(REFRESH_KEY) or None

    def clear_tokens(self) -> None:
        self.storage.remove(ACCESS_KEY, REFRESH_KEY)
