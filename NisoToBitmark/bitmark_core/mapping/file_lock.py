"""
Advisory File Lock
==================

Cross-process mutual exclusion based on exclusively creating a marker
file. The marker holds the owner's token; release removes the marker only
when it still holds that token. Markers older than ``stale_after`` seconds
are treated as left over by a crashed writer and reclaimed.
"""

from pathlib import Path
from typing import Optional, Union
import logging
import os
import time
import uuid

from bitmark_core.errors import LockTimeoutError, StoreIOError

logger = logging.getLogger(__name__)


class AdvisoryFileLock:
    """
    Owner-token file lock with stale lock reclamation.

    Example usage:
        lock = AdvisoryFileLock(Path("mappings/customer2AnchorIdMappings.json.lock"))
        with lock:
            ...  # read-modify-write cycle

    Retries back off exponentially (50ms, 100ms, 200ms ... capped at
    ``max_delay``) until ``timeout`` seconds have passed.
    """

    def __init__(self, path: Union[str, Path], timeout: float = 5.0,
                 stale_after: float = 30.0, base_delay: float = 0.025,
                 max_delay: float = 1.0):
        self.path = Path(path)
        self.timeout = timeout
        self.stale_after = stale_after
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.token = uuid.uuid4().hex
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def age(self) -> Optional[float]:
        """Age of the current marker in seconds, None when there is none."""
        try:
            return time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    def read_owner(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Lock owner of {self.path} not readable: {e}")
            return None

    def reclaim_if_stale(self, max_age: Optional[float] = None) -> bool:
        """
        Remove the marker when it is older than ``max_age`` seconds.

        Returns:
            True if a stale marker was removed
        """
        max_age = self.stale_after if max_age is None else max_age
        age = self.age()
        if age is None or age <= max_age:
            return False

        owner = self.read_owner()
        logger.warning(f"Removing stale lock {self.path} ({age:.0f}s) held by {owner}")
        try:
            self.path.unlink()
        except FileNotFoundError:
            # another writer reclaimed it first
            return True
        except OSError as e:
            logger.warning(f"Could not remove stale lock {self.path}: {e}")
            return False
        return True

    def acquire(self) -> bool:
        """
        Acquire the lock.

        Raises:
            LockTimeoutError: If the lock is still held by another writer
                after ``timeout`` seconds
            StoreIOError: If the marker cannot be created for another reason
        """
        if self._held:
            return True

        start = time.monotonic()
        attempt = 0
        self.path.parent.mkdir(parents=True, exist_ok=True)

        while True:
            try:
                fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                if self.reclaim_if_stale():
                    time.sleep(0.1)
                    continue
                if time.monotonic() - start > self.timeout:
                    raise LockTimeoutError(str(self.path), self.timeout)
                attempt += 1
                time.sleep(min((2 ** attempt) * self.base_delay, self.max_delay))
                continue
            except OSError as e:
                raise StoreIOError(f"Cannot create lock file {self.path}: {e}", str(self.path)) from e

            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self.token)
            self._held = True
            logger.debug(f"Lock acquired {self.path} ({self.token})")
            return True

    def release(self) -> None:
        """Release the lock if the marker still carries our token."""
        if not self._held:
            return
        self._held = False

        owner = self.read_owner()
        if owner is None:
            logger.warning(f"Lock {self.path} vanished before release")
            return
        if owner != self.token:
            logger.warning(f"Lock {self.path} belongs to {owner}, not removed")
            return
        try:
            self.path.unlink()
            logger.debug(f"Lock released {self.path}")
        except FileNotFoundError:
            pass

    def __enter__(self) -> 'AdvisoryFileLock':
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
