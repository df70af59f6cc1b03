"""Storage for the access and refresh tokens.

The HTTP client receives a token store instead of reaching for globals, so the
backing area can be swapped (memory for tests, a file for the CLI, a keychain
for anything else) without touching the request path.
"""
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

ACCESS_KEY = "access_token"
REFRESH_KEY = "refresh_token"


class BaseTokenStore:
    """Base class for token persistence (to be extended by specific implementations)"""

    def get_access(self) -> Optional[str]:
        raise NotImplementedError

    def get_refresh(self) -> Optional[str]:
        raise NotImplementedError

    def set_tokens(self, access: str, refresh: Optional[str]) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryTokenStore(BaseTokenStore):
    """Keeps tokens for the lifetime of the process only."""

    def __init__(self, access: Optional[str] = None, refresh: Optional[str] = None):
        self._lock = threading.Lock()
        self._access = access
        self._refresh = refresh

    def get_access(self) -> Optional[str]:
        with self._lock:
            return self._access

    def get_refresh(self) -> Optional[str]:
        with self._lock:
            return self._refresh

    def set_tokens(self, access: str, refresh: Optional[str]) -> None:
        with self._lock:
            self._access = access
            self._refresh = refresh

    def clear(self) -> None:
        with self._lock:
            self._access = None
            self._refresh = None


class FileTokenStore(BaseTokenStore):
    """Persists tokens as a small JSON document.

    Writes go to a temporary file in the same directory followed by
    ``os.replace`` so a reader sees either the old pair or the new one.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def _read(self) -> dict:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable token file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".tokens-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get_access(self) -> Optional[str]:
        with self._lock:
            return self._read().get(ACCESS_KEY)

    def get_refresh(self) -> Optional[str]:
        with self._lock:
            return self._read().get(REFRESH_KEY)

    def set_tokens(self, access: str, refresh: Optional[str]) -> None:
        with self._lock:
            self._write({ACCESS_KEY: access, REFRESH_KEY: refresh})

    def clear(self) -> None:
        with self._lock:
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
        logger.info("Cleared stored credentials at %s", self.path)


def get_token_store(settings=None) -> BaseTokenStore:
    """Return the token store configured for this process."""
    if settings is None:
        from dam_client.config.settings import get_settings
        settings = get_settings()
    return FileTokenStore(settings.token_store_path)
