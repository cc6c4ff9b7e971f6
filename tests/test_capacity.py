"""Tests for storage exhaustion handling."""

import logging

from kvfs import (
    CapacityExceeded,
    MemoryStore,
    VFSConfig,
    VirtualFileSystem,
)


class FailingStore(MemoryStore):
    """MemoryStore that reports itself full for selected keys."""

    def __init__(self, fail_on=()):
        super().__init__()
        self.fail_on = set(fail_on)

    def set(self, key, value):
        if key in self.fail_on:
            raise CapacityExceeded("Store capacity exceeded", key)
        super().set(key, value)


class TestWriteCapacity:
    """Test write behavior against a full store."""

    def test_limit_allows_within_budget(self):
        """Test writes within the quota succeed."""
        fs = VirtualFileSystem(MemoryStore(capacity=1000))

        assert fs.write("/file.txt", "x" * 100)
        assert fs.read("/file.txt").content == "x" * 100

    def test_oversized_write_returns_failure(self):
        """Test an oversized write reports a named failure instead of raising."""
        fs = VirtualFileSystem(MemoryStore(capacity=200))

        result = fs.write("/large.bin", "x" * 500)

        assert not result
        assert result.reason == "capacity_exceeded"
        assert result.path == "/large.bin"
        assert "capacity exceeded" in result.message
        assert not fs.exists("/large.bin")

    def test_failed_overwrite_keeps_previous_value(self):
        """Test the prior stored value survives a failed overwrite."""
        fs = VirtualFileSystem(MemoryStore(capacity=300))
        fs.write("/file.txt", "original")

        result = fs.write("/file.txt", "y" * 400)

        assert not result
        assert fs.read("/file.txt").content == "original"

    def test_delete_frees_space(self):
        """Test deleting entries makes room for new writes."""
        fs = VirtualFileSystem(MemoryStore(capacity=400))
        fs.write("/one.txt", "x" * 200)
        assert not fs.write("/two.txt", "y" * 200)

        fs.delete("/one.txt")

        assert fs.write("/two.txt", "y" * 200)

    def test_failure_emits_event(self):
        """Test listeners receive the path that failed to write."""
        fs = VirtualFileSystem(MemoryStore(capacity=50))
        events = []
        fs.on_storage_full(events.append)

        fs.write("/docs/big.txt", "x" * 100)

        assert len(events) == 1
        assert events[0].path == "/docs/big.txt"
        assert events[0].key == "kvfs:fs:/docs/big.txt"

    def test_unsubscribe(self):
        """Test an unsubscribed listener gets no further events."""
        fs = VirtualFileSystem(MemoryStore(capacity=50))
        events = []
        unsubscribe = fs.on_storage_full(events.append)

        unsubscribe()
        fs.write("/big.txt", "x" * 100)

        assert events == []

    def test_failing_listener_does_not_break_write(self, caplog):
        """Test a raising listener is logged and others still run."""
        fs = VirtualFileSystem(MemoryStore(capacity=50))
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        fs.on_storage_full(broken)
        fs.on_storage_full(seen.append)

        with caplog.at_level(logging.ERROR):
            result = fs.write("/big.txt", "x" * 100)

        assert not result
        assert len(seen) == 1
        assert "Event listener" in caplog.text
        assert "Storage quota exceeded writing /big.txt" in caplog.text

    def test_mkdir_failure(self):
        """Test mkdir reports capacity failures the same way."""
        fs = VirtualFileSystem(MemoryStore(capacity=10))

        result = fs.mkdir("/a-long-directory-name")

        assert result.reason == "capacity_exceeded"
        assert not fs.exists("/a-long-directory-name")


class TestPartialFailure:
    """Test multi-key operations interrupted by a full store."""

    def _tree(self, store, config=None):
        fs = VirtualFileSystem(store, config)
        fs.mkdir("/a")
        fs.mkdir("/a/b")
        fs.write("/a/b/f", "x")
        fs.write("/a/c", "y")
        return fs

    def test_rename_stops_at_failure(self):
        """Test moved entries stay moved and the rest stay put."""
        store = FailingStore()
        fs = self._tree(store)
        store.fail_on.add("kvfs:fs:/z/b/f")
        events = []
        fs.on_storage_full(events.append)

        result = fs.rename("/a", "/z")

        assert not result
        assert result.reason == "capacity_exceeded"
        assert result.path == "/z/b/f"
        assert [e.path for e in events] == ["/z/b/f"]
        assert fs.exists("/z/b")
        assert not fs.exists("/a/b")
        assert fs.exists("/a/b/f")
        assert fs.exists("/a/c")
        # The directory entry itself moves last
        assert fs.exists("/a")
        assert not fs.exists("/z")

    def test_rename_directory_entry_failure(self):
        """Test a failure on the final directory entry leaves descendants moved."""
        store = FailingStore()
        fs = self._tree(store)
        store.fail_on.add("kvfs:fs:/z")

        result = fs.rename("/a", "/z")

        assert not result
        assert fs.exists("/z/b/f")
        assert fs.exists("/z/c")
        assert fs.exists("/a")

    def test_copy_failure(self):
        """Test copy reports the path it could not write."""
        store = FailingStore()
        fs = self._tree(store)
        store.fail_on.add("kvfs:fs:/copy/c")

        result = fs.copy("/a", "/copy")

        assert result.reason == "capacity_exceeded"
        assert result.path == "/copy/c"

    def test_journal_write_failure_aborts_rename(self):
        """Test rename touches nothing if its intent cannot be recorded."""
        store = FailingStore()
        fs = self._tree(store, VFSConfig(journal=True))
        store.fail_on.add("kvfs:journal")

        result = fs.rename("/a", "/z")

        assert not result
        assert result.path == "/a"
        assert fs.exists("/a/b/f")
        assert not fs.exists("/z")

    def test_journal_write_failure_still_deletes(self):
        """Test delete proceeds without an intent record."""
        store = FailingStore()
        fs = self._tree(store, VFSConfig(journal=True))
        store.fail_on.add("kvfs:journal")
        events = []
        fs.on_storage_full(events.append)

        fs.delete("/a")

        assert not fs.exists("/a")
        assert not fs.exists("/a/b/f")
        assert len(events) == 1
