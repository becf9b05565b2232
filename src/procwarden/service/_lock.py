"""Per-service control lock.

Mutating ServiceController actions serialize on a file lock keyed by the
service display name, so two concurrent ``start`` invocations cannot both
launch the service.
"""

import re
from pathlib import Path
from types import TracebackType
from typing import Final, Self, final

import platformdirs
from filelock import FileLock, Timeout

from procwarden.exceptions import LockTimeoutError

DEFAULT_LOCK_TIMEOUT: Final = 30.0

_SLUG_PATTERN: Final = re.compile(r"[^a-z0-9]+")


def default_lock_dir() -> Path:
    """Return the per-user directory holding service lock files."""
    return Path(platformdirs.user_cache_dir("procwarden")) / "locks"


def lock_slug(name: str) -> str:
    """Return a filesystem-safe lock name for a service display name."""
    slug = _SLUG_PATTERN.sub("-", name.lower()).strip("-")
    return slug or "service"


@final
class ServiceLock:
    """Scoped inter-process lock for one service.

    Re-entrant: nested acquisitions by the same holder only release the
    file lock when the outermost scope exits.
    """

    __slots__ = ("_filelock", "_name", "_path", "_timeout")

    def __init__(
        self,
        name: str,
        lock_dir: Path,
        *,
        timeout: float = DEFAULT_LOCK_TIMEOUT,
    ) -> None:
        """Initialize the lock.

        Args:
            name: Service display name keying the lock.
            lock_dir: Directory holding lock files. Created on first use.
            timeout: Seconds to wait for the lock before giving up.
        """
        self._name = name
        self._path = lock_dir / f"{lock_slug(name)}.lock"
        self._timeout = timeout
        self._filelock = FileLock(str(self._path), timeout=timeout)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def is_locked(self) -> bool:
        return self._filelock.is_locked

    def acquire(self) -> None:
        """Acquire the lock, waiting at most ``timeout`` seconds.

        Raises:
            LockTimeoutError: If the lock is still held by someone else.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        try:
            _ = self._filelock.acquire()
        except Timeout as e:
            msg = (
                f"Another {self._name} control action is in progress "
                f"(lock {self._path} not acquired within {self._timeout:g}s)"
            )
            raise LockTimeoutError(
                msg,
                service_name=self._name,
                lock_path=self._path,
                timeout=self._timeout,
            ) from e

    def release(self) -> None:
        self._filelock.release()

    def __enter__(self) -> Self:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release()
