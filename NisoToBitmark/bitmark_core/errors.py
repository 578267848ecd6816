"""
Conversion Errors
=================

Fatal error taxonomy. Anything raised from here aborts the whole
conversion; non-fatal conditions are collected by
:class:`bitmark_core.tracking.TransformerLog` instead.
"""

from typing import Optional


class BitmarkError(Exception):
    """Base class for all fatal conversion errors."""


class StoreIOError(BitmarkError):
    """A mapping store file could not be read or written."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class LockTimeoutError(StoreIOError):
    """The advisory lock of a mapping store was not acquired in time."""

    def __init__(self, lock_path: str, timeout: float):
        super().__init__(
            f"Timeout ({timeout:.1f}s) while trying to create lock file {lock_path}",
            path=lock_path,
        )
        self.timeout = timeout


class SourceStreamError(BitmarkError):
    """The source XML stream is malformed."""

    def __init__(self, message: str, line: Optional[int] = None):
        super().__init__(message)
        self.line = line


class MissingCompanionFileError(BitmarkError):
    """A document lacks its metadata file or registry entry."""
