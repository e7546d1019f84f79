"""Tests for offset-validated appends (UploadStore)."""

import threading
from pathlib import Path

import pytest

from resumable.core.ranges import ContentRange, MalformedRangeError
from resumable.server.leases import LeaseConflictError, UploadLeases
from resumable.server.storage import (
    ArtifactNotFoundError,
    LocalFSStore,
    MemoryStore,
    OffsetConflictError,
)
from resumable.server.uploads import UploadStore


def declared(start: int, size: int, total: int | None = None) -> ContentRange:
    """Build a ContentRange for size bytes starting at start."""
    return ContentRange(start=start, end=start + size - 1, total=total)


@pytest.fixture
def uploads(tmp_path: Path) -> UploadStore:
    """Create an UploadStore over local storage."""
    return UploadStore(LocalFSStore(tmp_path / "uploads"))


class TestAppend:
    """Tests for UploadStore.append()."""

    def test_sequential_chunks_sum_to_total(self, uploads: UploadStore) -> None:
        """In-order chunks should leave stored size equal to their sum."""
        sizes = [1000, 1000, 500]
        offset = 0
        for size in sizes:
            offset = uploads.append("a.bin", declared(offset, size, 2500), b"x" * size)

        assert offset == 2500
        assert uploads.stored_size("a.bin") == 2500

    def test_missing_range_is_malformed(self, uploads: UploadStore) -> None:
        """A missing range declaration should be rejected before size checks."""
        with pytest.raises(MalformedRangeError, match="required"):
            uploads.append("a.bin", None, b"data")
        with pytest.raises(ArtifactNotFoundError):
            uploads.stored_size("a.bin")

    def test_payload_length_mismatch(self, uploads: UploadStore) -> None:
        """A payload shorter than declared should be rejected unchanged."""
        with pytest.raises(MalformedRangeError, match="declares 10"):
            uploads.append("a.bin", declared(0, 10), b"short")
        with pytest.raises(ArtifactNotFoundError):
            uploads.stored_size("a.bin")

    def test_length_checked_before_offset(self, uploads: UploadStore) -> None:
        """A bad payload length should win over a bad offset."""
        with pytest.raises(MalformedRangeError):
            uploads.append("a.bin", declared(99, 10), b"short")

    def test_offset_conflict_reports_current_size(self) -> None:
        """Appending at 500000 over 400000 stored bytes should report 400000."""
        uploads = UploadStore(MemoryStore())
        uploads.append("a.bin", declared(0, 400000), b"\0" * 400000)

        with pytest.raises(OffsetConflictError) as exc_info:
            uploads.append("a.bin", declared(500000, 1000), b"\1" * 1000)

        assert exc_info.value.current_size == 400000
        assert uploads.stored_size("a.bin") == 400000

    def test_overlapping_chunk_rejected(self, uploads: UploadStore) -> None:
        """Re-sending an already stored chunk should be rejected idempotently."""
        uploads.append("a.bin", declared(0, 4), b"abcd")

        with pytest.raises(OffsetConflictError):
            uploads.append("a.bin", declared(0, 4), b"abcd")

        assert uploads.stored_size("a.bin") == 4

    def test_unknown_total_accepted(self, uploads: UploadStore) -> None:
        """A '*' total should not prevent the append."""
        assert uploads.append("a.bin", declared(0, 3, None), b"abc") == 3


class TestConcurrency:
    """Tests for per-name serialization."""

    def test_racing_writers_same_offset(self) -> None:
        """Of many writers racing at offset 0, exactly one should win."""
        uploads = UploadStore(MemoryStore())
        results: list[str] = []
        barrier = threading.Barrier(8)

        def writer(i: int) -> None:
            barrier.wait()
            try:
                uploads.append("race.bin", declared(0, 100), bytes([i]) * 100)
                results.append("ok")
            except OffsetConflictError:
                results.append("conflict")

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("ok") == 1
        assert results.count("conflict") == 7
        assert uploads.stored_size("race.bin") == 100
        assert uploads.locked_names == 0

    def test_different_names_in_parallel(self, tmp_path: Path) -> None:
        """Writers on different names should all succeed."""
        uploads = UploadStore(LocalFSStore(tmp_path / "uploads"))

        def writer(name: str) -> None:
            offset = 0
            for _ in range(20):
                offset = uploads.append(name, declared(offset, 64), b"y" * 64)

        threads = [
            threading.Thread(target=writer, args=(f"file{i}.bin",)) for i in range(4)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for i in range(4):
            assert uploads.stored_size(f"file{i}.bin") == 20 * 64


class TestLeases:
    """Tests for session lease enforcement in UploadStore."""

    @pytest.fixture
    def leased(self) -> UploadStore:
        """Create an UploadStore with a lease table."""
        return UploadStore(MemoryStore(), UploadLeases(ttl=300))

    def test_second_session_rejected(self, leased: UploadStore) -> None:
        """Another session should be rejected while the first is uploading."""
        leased.append("a.bin", declared(0, 10, 20), b"a" * 10, session_id="s1")

        with pytest.raises(LeaseConflictError):
            leased.append("a.bin", declared(10, 10, 20), b"b" * 10, session_id="s2")

        assert leased.stored_size("a.bin") == 10

    def test_owner_continues(self, leased: UploadStore) -> None:
        """The owning session should keep appending."""
        leased.append("a.bin", declared(0, 10, 20), b"a" * 10, session_id="s1")
        assert leased.append("a.bin", declared(10, 10, 20), b"a" * 10, session_id="s1") == 20

    def test_lease_released_on_completion(self, leased: UploadStore) -> None:
        """Reaching the declared total should release the lease."""
        leased.append("a.bin", declared(0, 10, 10), b"a" * 10, session_id="s1")

        # Lease is free, so s2 gets as far as the offset check
        with pytest.raises(OffsetConflictError):
            leased.append("a.bin", declared(0, 10, 10), b"b" * 10, session_id="s2")

    def test_no_session_header_not_checked(self, leased: UploadStore) -> None:
        """Appends without a session id should bypass the lease."""
        leased.append("a.bin", declared(0, 10, 20), b"a" * 10, session_id="s1")
        assert leased.append("a.bin", declared(10, 10, 20), b"a" * 10) == 20


class TestTableCleanup:
    """Tests that per-name bookkeeping does not outlive the uploads."""

    def test_lock_dropped_after_append(self, uploads: UploadStore) -> None:
        """No lock entry should remain once appends finish."""
        for i in range(5):
            uploads.append(f"file{i}.bin", declared(0, 10, 10), b"x" * 10)

        assert uploads.locked_names == 0

    def test_lock_dropped_after_rejected_append(self, uploads: UploadStore) -> None:
        """A rejected append should not leave a lock entry behind."""
        with pytest.raises(OffsetConflictError):
            uploads.append("a.bin", declared(5, 10, 20), b"x" * 10)

        assert uploads.locked_names == 0

    def test_lock_held_while_append_runs(self) -> None:
        """The lock entry should exist while an append is in the store."""
        entered = threading.Event()
        proceed = threading.Event()

        class SlowStore(MemoryStore):
            def append_exactly_at(self, name: str, offset: int, data: bytes) -> int:
                entered.set()
                proceed.wait(5)
                return super().append_exactly_at(name, offset, data)

        uploads = UploadStore(SlowStore())
        writer = threading.Thread(
            target=uploads.append, args=("a.bin", declared(0, 10, 10), b"x" * 10)
        )
        writer.start()
        entered.wait(5)

        assert uploads.locked_names == 1

        proceed.set()
        writer.join()
        assert uploads.locked_names == 0

    def test_lease_dropped_after_completed_upload(self) -> None:
        """A completed upload should leave no lease behind."""
        leases = UploadLeases(ttl=300)
        uploads = UploadStore(MemoryStore(), leases)

        uploads.append("a.bin", declared(0, 10, 20), b"a" * 10, session_id="s1")
        assert len(leases) == 1
        uploads.append("a.bin", declared(10, 10, 20), b"a" * 10, session_id="s1")

        assert len(leases) == 0
        assert uploads.locked_names == 0
