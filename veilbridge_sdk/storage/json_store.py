"""
Process-safe JSON document storage.
"""
import os
import json
import stat
import time
import tempfile
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional

import portalocker

from ..config import home_dir

logger = logging.getLogger(__name__)

LOCK_TIMEOUT = 10


class JsonFileStore:
    """
    One JSON document on disk, guarded by an exclusive lock file.

    The directory is created 0700 and the file 0600 on POSIX systems so
    that other local users cannot read ledgers or encrypted secrets.
    """

    def __init__(self, filename: str, empty: Dict[str, Any], store_path: Optional[str] = None):
        """
        Args:
            filename: File name used under the SDK home directory
            empty: Document written when the file does not exist yet
            store_path: Full path overriding the default location
        """
        self.store_path = Path(store_path) if store_path else home_dir() / filename
        self._empty = empty
        self._ensure_dir()

    def _ensure_dir(self):
        directory = self.store_path.parent
        if not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)
            if os.name == 'posix':
                os.chmod(directory, stat.S_IRUSR | stat.S_IWUSR | stat.S_IXUSR)  # 0700

        if not self.store_path.exists():
            with self._locked():
                if not self.store_path.exists():
                    self._write_unlocked(self._fresh())

        if os.name == 'posix':
            os.chmod(self.store_path, stat.S_IRUSR | stat.S_IWUSR)  # 0600

    def _get_lock_path(self) -> str:
        return str(self.store_path) + '.lock'

    def _fresh(self) -> Dict[str, Any]:
        return json.loads(json.dumps(self._empty))

    def _quarantine(self) -> Path:
        """Move an unreadable document aside so it is never overwritten."""
        backup = self.store_path.with_name(f"{self.store_path.name}.corrupt-{int(time.time() * 1000)}")
        os.replace(self.store_path, backup)
        return backup

    def _read_unlocked(self) -> Dict[str, Any]:
        try:
            with open(self.store_path, 'r') as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.warning(f"{self.store_path} is missing, starting empty")
            return self._fresh()
        except json.JSONDecodeError as e:
            backup = self._quarantine()
            logger.error(f"{self.store_path} is corrupt ({e}), moved to {backup}; starting empty")
            return self._fresh()
        if not isinstance(data, dict):
            backup = self._quarantine()
            logger.error(f"{self.store_path} does not hold a JSON object, moved to {backup}; starting empty")
            return self._fresh()
        return data

    def _write_unlocked(self, data: Dict[str, Any]):
        """Write to a temporary file and atomically replace the document."""
        fd, tmp_path = tempfile.mkstemp(
            prefix=f"{self.store_path.name}.", suffix=".tmp", dir=str(self.store_path.parent)
        )
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.store_path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with portalocker.Lock(self._get_lock_path(), timeout=LOCK_TIMEOUT):
            yield

    def read(self) -> Dict[str, Any]:
        """Read the whole document."""
        with self._locked():
            return self._read_unlocked()

    def write(self, data: Dict[str, Any]):
        """Replace the whole document."""
        with self._locked():
            self._write_unlocked(data)

    def update(self, mutate: Callable[[Dict[str, Any]], Any]) -> Any:
        """
        Read, mutate and write back the document under a single lock.

        Args:
            mutate: Callable that edits the document in place

        Returns:
            Whatever ``mutate`` returns
        """
        with self._locked():
            data = self._read_unlocked()
            result = mutate(data)
            self._write_unlocked(data)
            return result

    def clear(self):
        self.write(self._fresh())
