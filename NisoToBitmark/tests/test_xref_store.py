"""
Cross-Reference Store Tests

Run with: pytest NisoToBitmark/tests/test_xref_store.py -v
"""

import json
import multiprocessing
import os
import sys
import time
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from bitmark_core.errors import LockTimeoutError
from bitmark_core.mapping import (
    MAPPING_FILENAME,
    AdvisoryFileLock,
    CrossReferenceStore,
    extract_customer_id,
)

SELF_HREF = "fscxeditor://xeditordocument/self?xpath=//*[local-name()='id' and .='fig-2']"


def put_many(directory: str, prefix: str, count: int) -> None:
    """Worker: register ``count`` keys through an independent store instance."""
    store = CrossReferenceStore(Path(directory), lock_timeout=30.0)
    for i in range(count):
        store.put(f"{prefix}-{i}", f"sec_{i}", None, prefix)


def put_in_session(directory: str, prefix: str, count: int) -> None:
    """Worker: register ``count`` keys in one slow session, like a long parse."""
    store = CrossReferenceStore(Path(directory), lock_timeout=30.0, stale_lock_age=0.5)
    with store.session():
        for i in range(count):
            store.put(f"{prefix}-{i}", f"sec_{i}", None, prefix)
            time.sleep(0.05)


class TestPutAndGet:
    """Tests for single operations."""

    def test_put_then_get(self, store):
        result = store.put("sec-1", "sec_1", None, "NIN2025")
        assert not result.updated
        assert not result.conflict

        entry = store.get("sec-1")
        assert entry.anchor_id == "sec_1"
        assert entry.parent_anchor_id is None
        assert entry.remark == "NIN2025"

    def test_unknown_key(self, store):
        assert store.get("missing") is None
        assert store.get_anchor_id("missing") is None
        assert store.get(None) is None

    def test_encoded_href_lookup(self, store):
        store.put("fig-2", "fig_1_2", "sec_1", "NIN2025")
        assert store.get_anchor_id(SELF_HREF) == "fig_1_2"
        assert store.get_parent_anchor_id(SELF_HREF) == "sec_1"

    def test_same_anchor_refreshes_entry(self, store):
        store.put("sec-1", "sec_1", None, "A")
        result = store.put("sec-1", "sec_1", "front_1", "A")
        assert result.updated
        assert not result.conflict
        assert store.get_parent_anchor_id("sec-1") == "front_1"

    def test_duplicate_identifier_keeps_first(self, store, log):
        store.put("sec-1", "sec_1", None, "A")
        result = store.put("sec-1", "sec_7", None, "B")

        assert result.conflict
        assert result.anchor_id == "sec_1"
        assert store.get_anchor_id("sec-1") == "sec_1"
        assert log.count(key="DuplicateIdentifier") == 1

    def test_delete(self, store):
        store.put("sec-1", "sec_1")
        assert store.delete("sec-1")
        assert not store.delete("sec-1")
        assert "sec-1" not in store

    def test_lookup_by_anchor(self, store):
        store.put("a", "sec_1")
        store.put("b", "sec_1")
        store.put("c", "sec_2")
        assert sorted(e.customer_id for e in store.get_by_anchor_id("sec_1")) == ["a", "b"]
        assert store.exists(anchor_id="sec_2")
        assert store.exists(customer_id="c", anchor_id="sec_2")
        assert not store.exists(customer_id="c", anchor_id="sec_1")


class TestScopedDelete:
    """Tests for removing one document's mappings."""

    def test_delete_by_external_id(self, store):
        store.put("a-1", "sec_1", None, "A")
        store.put("a-2", "sec_2", None, "A")
        store.put("b-1", "sec_1", None, "B")

        assert store.delete_all_where_external_id("A") == 2
        assert len(store) == 1
        assert store.get("b-1").remark == "B"

    def test_delete_unknown_document(self, store):
        store.put("a-1", "sec_1", None, "A")
        assert store.delete_all_where_external_id("Z") == 0
        assert len(store) == 1


class TestPersistence:
    """Tests for the mapping file."""

    def test_visible_to_new_instance(self, store, mapping_dir):
        store.put("sec-1", "sec_1", None, "A")
        other = CrossReferenceStore(mapping_dir)
        assert other.get_anchor_id("sec-1") == "sec_1"

    def test_reader_sees_other_writer(self, store, mapping_dir):
        store.put("sec-1", "sec_1")
        other = CrossReferenceStore(mapping_dir)
        assert len(other) == 1

        time.sleep(0.01)
        store.put("sec-2", "sec_2")
        assert other.get_anchor_id("sec-2") == "sec_2"

    def test_file_layout(self, store, mapping_dir):
        store.put("sec-1", "sec_1", "front_1", "A")
        data = json.loads((mapping_dir / MAPPING_FILENAME).read_text(encoding="utf-8"))
        assert data == {"sec-1": {"anchorId": "sec_1", "parentAnchorId": "front_1", "remark": "A"}}

    def test_legacy_string_records(self, mapping_dir):
        mapping_dir.mkdir(parents=True)
        (mapping_dir / MAPPING_FILENAME).write_text(json.dumps({"sec-1": "sec_1"}), encoding="utf-8")
        entry = CrossReferenceStore(mapping_dir).get("sec-1")
        assert entry.anchor_id == "sec_1"
        assert entry.remark == ""

    def test_corrupt_file_starts_empty(self, mapping_dir):
        mapping_dir.mkdir(parents=True)
        (mapping_dir / MAPPING_FILENAME).write_text("{not json", encoding="utf-8")
        store = CrossReferenceStore(mapping_dir)
        assert len(store) == 0
        store.put("sec-1", "sec_1")
        assert len(CrossReferenceStore(mapping_dir)) == 1

    def test_reset(self, store):
        store.put("sec-1", "sec_1")
        store.reset()
        assert not store.path.exists()
        assert len(store) == 0


class TestSession:
    """Tests for batched writes."""

    def test_written_once_at_end(self, store):
        with store.session():
            store.put("sec-1", "sec_1")
            store.put("sec-2", "sec_2")
            assert not store.path.exists()
            assert store.get_anchor_id("sec-2") == "sec_2"
        assert len(CrossReferenceStore(store.directory)) == 2

    def test_failed_session_writes_nothing(self, store):
        with pytest.raises(RuntimeError):
            with store.session():
                store.put("sec-1", "sec_1")
                raise RuntimeError("parse failed")
        assert not store.path.exists()
        assert store.get("sec-1") is None

    def test_lock_not_held_during_session(self, store):
        with store.session():
            store.put("sec-1", "sec_1")
            assert not store.lock.path.exists()
        assert not store.lock.path.exists()

    def test_writes_of_other_stores_kept(self, store, mapping_dir):
        """A key written by another store while a session runs survives the commit."""
        other = CrossReferenceStore(mapping_dir, lock_timeout=0.5, stale_lock_age=0.5)
        with store.session():
            store.put("a-key", "sec_1", None, "A")
            time.sleep(1.0)
            other.put("b-key", "sec_2", None, "B")

        assert sorted(e.customer_id for e in CrossReferenceStore(mapping_dir).get_all()) == [
            "a-key", "b-key"]
        assert store.get_anchor_id("b-key") == "sec_2"

    def test_first_write_wins_on_commit(self, store, mapping_dir, log):
        other = CrossReferenceStore(mapping_dir)
        with store.session():
            result = store.put("sec-1", "sec_1", None, "A")
            assert not result.conflict
            other.put("sec-1", "sec_9", None, "B")

        assert CrossReferenceStore(mapping_dir).get_anchor_id("sec-1") == "sec_9"
        assert log.count(key="DuplicateIdentifier") == 1

    def test_scoped_delete_replayed(self, store, mapping_dir):
        store.put("old-1", "sec_1", None, "A")
        with store.session():
            assert store.delete_all_where_external_id("A") == 1
            store.put("new-1", "sec_2", None, "A")
            assert store.get("old-1") is None

        assert [e.customer_id for e in CrossReferenceStore(mapping_dir).get_all()] == ["new-1"]


class TestLocking:
    """Tests for the advisory lock."""

    def test_timeout_when_lock_is_held(self, mapping_dir):
        mapping_dir.mkdir(parents=True)
        lock_path = mapping_dir / f"{MAPPING_FILENAME}.lock"
        lock_path.write_text("other-writer", encoding="utf-8")

        store = CrossReferenceStore(mapping_dir, lock_timeout=0.2)
        with pytest.raises(LockTimeoutError):
            store.put("sec-1", "sec_1")
        assert lock_path.read_text(encoding="utf-8") == "other-writer"

    def test_stale_lock_reclaimed(self, mapping_dir):
        mapping_dir.mkdir(parents=True)
        lock_path = mapping_dir / f"{MAPPING_FILENAME}.lock"
        lock_path.write_text("crashed-writer", encoding="utf-8")
        old = time.time() - 120
        os.utime(lock_path, (old, old))

        store = CrossReferenceStore(mapping_dir, lock_timeout=0.5, stale_lock_age=60.0)
        store.put("sec-1", "sec_1")
        assert store.get_anchor_id("sec-1") == "sec_1"
        assert not lock_path.exists()

    def test_release_keeps_foreign_marker(self, tmp_path):
        lock = AdvisoryFileLock(tmp_path / "x.lock")
        lock.acquire()
        lock.path.write_text("someone-else", encoding="utf-8")
        lock.release()
        assert lock.path.exists()
        assert not lock.held


class TestConcurrentWriters:
    """Tests for independent processes writing the same store."""

    def test_no_lost_updates(self, mapping_dir):
        ctx = multiprocessing.get_context("spawn")
        workers = [
            ctx.Process(target=put_many, args=(str(mapping_dir), prefix, 25))
            for prefix in ("A", "B")
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join(timeout=120)

        assert all(worker.exitcode == 0 for worker in workers)
        store = CrossReferenceStore(mapping_dir)
        assert len(store) == 50
        assert store.get("A-24").remark == "A"
        assert store.get("B-0").remark == "B"

    def test_concurrent_sessions(self, mapping_dir):
        """Two sessions outliving the stale lock age both end up on disk."""
        ctx = multiprocessing.get_context("spawn")
        workers = [
            ctx.Process(target=put_in_session, args=(str(mapping_dir), prefix, 20))
            for prefix in ("A", "B")
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join(timeout=120)

        assert all(worker.exitcode == 0 for worker in workers)
        store = CrossReferenceStore(mapping_dir)
        assert len(store) == 40
        assert store.get("A-19").remark == "A"
        assert store.get("B-19").remark == "B"


class TestExtractCustomerId:
    """Tests for href decoding."""

    def test_encoded_href(self):
        assert extract_customer_id(SELF_HREF) == "fig-2"

    def test_plain_id(self):
        assert extract_customer_id("sec-1") == "sec-1"

    def test_empty(self):
        assert extract_customer_id("") is None
