"""
Cross-Reference Store
=====================

Persistent ``customer id -> {anchorId, parentAnchorId, remark}`` map
shared by independently running conversions.

Storage is a single JSON object file (``customer2AnchorIdMappings.json``).
Readers keep an in-process cache that is invalidated when the file
changes (modification time, size or inode). Writers run every
read-modify-write cycle under an :class:`AdvisoryFileLock` and always reload
before modifying, so concurrent writers never lose each other's keys.
A batch session records its writes in memory and replays them in one short
locked cycle when it ends; the lock is never held while a document is parsed.
Files are replaced atomically, a reader never sees a half-written file.

The ``remark`` of an entry names the document that produced it, which is
what scoped rebuilds delete by.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union
import json
import logging
import os
import re

from bitmark_core.errors import StoreIOError
from bitmark_core.mapping.file_lock import AdvisoryFileLock
from bitmark_core.tracking.transformer_log import Category, TransformerLog

logger = logging.getLogger(__name__)

MAPPING_FILENAME = "customer2AnchorIdMappings.json"
ENCODED_HREF_PREFIX = "fscxeditor://xeditordocument/"
# id inside an xpath predicate: ...[local-name()='id' and .='sec-12']
CUSTOMER_ID_PATTERN = re.compile(r"\[local-name\(\)='id'[^\]]*'([^']*?)'\]")


def extract_customer_id(value: Optional[str]) -> Optional[str]:
    """
    Decode the customer id carried by an encoded editor href.

    Plain customer ids are returned unchanged.

    Example:
        >>> extract_customer_id("fscxeditor://xeditordocument/self?xpath=//*[local-name()='id' and .='fig-2']")
        'fig-2'
    """
    if not value:
        return None
    if ENCODED_HREF_PREFIX in value:
        match = CUSTOMER_ID_PATTERN.search(value)
        if match and match.group(1):
            return match.group(1).strip()
    return value


@dataclass
class CrossReferenceEntry:
    """One customer id mapping."""

    customer_id: str
    anchor_id: str
    parent_anchor_id: Optional[str] = None
    remark: str = ""

    def to_record(self) -> dict:
        """Persisted form (without the key)."""
        return {
            "anchorId": self.anchor_id,
            "parentAnchorId": self.parent_anchor_id or None,
            "remark": self.remark,
        }

    @classmethod
    def from_record(cls, customer_id: str,
                    record: Union[str, Dict[str, Optional[str]]]) -> 'CrossReferenceEntry':
        """Create from a persisted value; a bare string is a legacy anchor id."""
        if isinstance(record, str):
            return cls(customer_id=customer_id, anchor_id=record)
        return cls(
            customer_id=customer_id,
            anchor_id=record.get("anchorId") or "",
            parent_anchor_id=record.get("parentAnchorId") or None,
            remark=record.get("remark") or "",
        )


@dataclass
class PutResult:
    """Outcome of :meth:`CrossReferenceStore.put`."""

    customer_id: str
    anchor_id: str
    parent_anchor_id: Optional[str] = None
    remark: str = ""
    updated: bool = False   # key existed before
    conflict: bool = False  # key existed with a different anchor id, kept as is


class CrossReferenceStore:
    """
    Concurrency-safe customer id to anchor id store.

    Single operations lock, reload, modify and save on their own. A
    :meth:`session` batches the writes of a whole document parse: they are
    applied to a private view at once and replayed against the current file
    in a single locked cycle when the session ends.

    Example usage:
        store = CrossReferenceStore(Path("mappings"))
        store.put("sec-1", "sec_1", None, "NIN2025")
        store.get("sec-1").anchor_id                    # 'sec_1'

        with store.session():
            for node in nodes:
                store.put(node.customer_id, node.anchor_id, node.parent_anchor_id, "NIN2025")

        store.delete_all_where_external_id("NIN2025")   # scoped rebuild
    """

    def __init__(self, directory: Union[str, Path], lock_timeout: float = 5.0,
                 stale_lock_age: float = 30.0, stale_lock_age_on_open: float = 300.0,
                 log: Optional[TransformerLog] = None):
        self.directory = Path(directory)
        self.path = self.directory / MAPPING_FILENAME
        self.lock = AdvisoryFileLock(
            self.path.with_name(self.path.name + ".lock"),
            timeout=lock_timeout,
            stale_after=stale_lock_age,
        )
        self.log = log

        self._mappings: Optional[Dict[str, object]] = None
        # (mtime, size, inode) of the file the cache was loaded from
        self._signature: Optional[Tuple[int, int, int]] = None
        self._in_session = False
        self._dirty = False
        # (operation, arguments) recorded by a session, replayed on commit
        self._pending: List[Tuple[str, tuple]] = []

        # leftovers of crashed runs
        self.lock.reclaim_if_stale(stale_lock_age_on_open)

    # ====================================================================
    # Persistence
    # ====================================================================

    def _file_signature(self) -> Optional[Tuple[int, int, int]]:
        try:
            stat = self.path.stat()
            return stat.st_mtime_ns, stat.st_size, stat.st_ino
        except FileNotFoundError:
            return None

    def _load(self, force: bool = False) -> Dict[str, object]:
        if self._in_session and self._mappings is not None:
            return self._mappings

        signature = self._file_signature()
        if not force and self._mappings is not None and signature == self._signature:
            return self._mappings

        if signature is None:
            self._mappings = {}
            self._signature = None
            return self._mappings

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreIOError(f"Cannot read mapping file {self.path}: {e}", str(self.path)) from e

        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            logger.error(f"Mapping file {self.path} is corrupt, starting empty: {e}")
            data = {}
        if not isinstance(data, dict):
            logger.error(f"Mapping file {self.path} holds no JSON object, starting empty")
            data = {}

        self._mappings = data
        self._signature = signature
        logger.debug(f"Loaded {len(data)} mappings from {self.path}")
        return self._mappings

    def _save(self) -> None:
        tmp_path = self.path.with_name(f"{self.path.name}.tmp.{self.lock.token}")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self._mappings, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StoreIOError(f"Cannot write mapping file {self.path}: {e}", str(self.path)) from e

        self._signature = self._file_signature()
        self._dirty = False
        logger.debug(f"Saved {len(self._mappings)} mappings to {self.path}")

    @contextmanager
    def _write_cycle(self) -> Iterator[Dict[str, object]]:
        if self._in_session:
            yield self._mappings
            return

        with self.lock:
            mappings = self._load(force=True)
            yield mappings
            if self._dirty:
                self._save()

    @contextmanager
    def session(self) -> Iterator['CrossReferenceStore']:
        """
        Batch writes without holding the lock.

        Inside the block, reads see the file as loaded when the session
        started plus the session's own writes. When the block ends normally
        the recorded writes are replayed against a fresh load under the
        lock, so keys written by other processes meanwhile are kept and
        first-write-wins applies per key. When the block raises, nothing is
        written and the cache is discarded.

        Raises:
            LockTimeoutError: If the store lock cannot be acquired on commit
        """
        if self._in_session:
            yield self
            return

        self._mappings = dict(self._load())
        # the view diverges from the file from here on
        self._signature = None
        self._pending = []
        self._in_session = True
        committed = False
        try:
            yield self
            self._in_session = False
            self._commit()
            committed = True
        finally:
            self._in_session = False
            self._pending = []
            self._dirty = False
            if not committed:
                self._mappings = None
                self._signature = None

    def _commit(self) -> None:
        pending, self._pending = self._pending, []
        self._dirty = False
        if not pending:
            return

        with self.lock:
            mappings = self._load(force=True)
            for operation, args in pending:
                if operation == "put":
                    self._apply_put(mappings, *args)
                elif operation == "delete":
                    self._apply_delete(mappings, *args)
                else:
                    self._apply_delete_external(mappings, *args)
            if self._dirty:
                self._save()
        logger.debug(f"Committed {len(pending)} session operations to {self.path}")

    def reset(self) -> None:
        """Delete the mapping file and any lock marker."""
        for path in (self.path, self.lock.path):
            try:
                path.unlink()
                logger.info(f"Removed {path}")
            except FileNotFoundError:
                pass
        self._mappings = None
        self._signature = None

    # ====================================================================
    # Write operations
    # ====================================================================

    def put(self, customer_id: str, anchor_id: str,
            parent_anchor_id: Optional[str] = None, remark: str = "") -> PutResult:
        """
        Add a mapping, or refresh parent and remark of an existing one.

        An existing key with a different anchor id is a duplicate
        identifier: the earliest mapping is kept and the conflict is logged.

        Raises:
            LockTimeoutError: If the store lock cannot be acquired
            StoreIOError: If the file cannot be read or written
        """
        args = (customer_id, anchor_id, parent_anchor_id, remark)
        with self._write_cycle() as mappings:
            result = self._apply_put(mappings, *args)
            if self._in_session and not result.conflict:
                self._pending.append(("put", args))
            return result

    def delete(self, customer_id: str) -> bool:
        """Remove one mapping. Returns False if it did not exist."""
        with self._write_cycle() as mappings:
            if self._in_session:
                self._pending.append(("delete", (customer_id,)))
            return self._apply_delete(mappings, customer_id)

    def delete_all_where_external_id(self, external_id: str) -> int:
        """
        Remove every mapping produced by one document.

        Returns:
            Number of removed mappings
        """
        with self._write_cycle() as mappings:
            if self._in_session:
                self._pending.append(("delete_external", (external_id,)))
            removed = self._apply_delete_external(mappings, external_id)
        logger.info(f"Deleted {removed} mappings of {external_id}")
        return removed

    def _apply_put(self, mappings: Dict[str, object], customer_id: str, anchor_id: str,
                   parent_anchor_id: Optional[str], remark: str) -> PutResult:
        existing = mappings.get(customer_id)
        if existing is not None:
            current = CrossReferenceEntry.from_record(customer_id, existing)
            if current.anchor_id != anchor_id:
                self._report_duplicate(current, anchor_id, remark)
                return PutResult(customer_id, current.anchor_id, current.parent_anchor_id,
                                 current.remark, updated=False, conflict=True)

        entry = CrossReferenceEntry(customer_id, anchor_id, parent_anchor_id or None, remark)
        if existing != entry.to_record():
            mappings[customer_id] = entry.to_record()
            self._dirty = True
        return PutResult(customer_id, anchor_id, entry.parent_anchor_id, remark,
                         updated=existing is not None)

    def _apply_delete(self, mappings: Dict[str, object], customer_id: str) -> bool:
        if customer_id not in mappings:
            logger.debug(f"No mapping for {customer_id} to delete")
            return False
        del mappings[customer_id]
        self._dirty = True
        return True

    def _apply_delete_external(self, mappings: Dict[str, object], external_id: str) -> int:
        doomed = [
            key for key, record in mappings.items()
            if CrossReferenceEntry.from_record(key, record).remark == external_id
        ]
        for key in doomed:
            del mappings[key]
        if doomed:
            self._dirty = True
        return len(doomed)

    def _report_duplicate(self, current: CrossReferenceEntry, anchor_id: str, remark: str) -> None:
        reference = (f"customerId: {current.customer_id} kept: {current.anchor_id} "
                     f"({current.remark}) ignored: {anchor_id} ({remark})")
        if self.log is not None:
            self.log.warn(Category.LINK, "DuplicateIdentifier", reference)
        else:
            logger.warning(f"DuplicateIdentifier {reference}")

    # ====================================================================
    # Read operations
    # ====================================================================

    def get(self, customer_id_or_href: Optional[str]) -> Optional[CrossReferenceEntry]:
        """Look up a customer id; encoded editor hrefs are decoded first."""
        customer_id = extract_customer_id(customer_id_or_href)
        if not customer_id:
            return None
        record = self._load().get(customer_id)
        if record is None:
            return None
        return CrossReferenceEntry.from_record(customer_id, record)

    def get_anchor_id(self, customer_id_or_href: Optional[str]) -> Optional[str]:
        entry = self.get(customer_id_or_href)
        return entry.anchor_id if entry else None

    def get_parent_anchor_id(self, customer_id_or_href: Optional[str]) -> Optional[str]:
        entry = self.get(customer_id_or_href)
        return entry.parent_anchor_id if entry else None

    def get_by_anchor_id(self, anchor_id: str) -> List[CrossReferenceEntry]:
        """All mappings pointing at one anchor id."""
        return [e for e in self.get_all() if e.anchor_id == anchor_id]

    def get_all(self) -> List[CrossReferenceEntry]:
        return [CrossReferenceEntry.from_record(k, v) for k, v in self._load().items()]

    def exists(self, customer_id: Optional[str] = None, anchor_id: Optional[str] = None) -> bool:
        if customer_id and anchor_id:
            entry = self.get(customer_id)
            return entry is not None and entry.anchor_id == anchor_id
        if customer_id:
            return self.get(customer_id) is not None
        if anchor_id:
            return bool(self.get_by_anchor_id(anchor_id))
        return False

    def __len__(self) -> int:
        return len(self._load())

    def __contains__(self, customer_id: str) -> bool:
        return self.exists(customer_id=customer_id)
