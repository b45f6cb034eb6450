# ABOUTME: Unit tests for per-path locks and the access lease table.
# ABOUTME: Checks canonical path keys, serialization, and acquire/release bookkeeping.

import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

from epubedit.core.access import AccessTable, PathLocks, canonical_key


class TestPathLocks:
    """Tests for PathLocks."""

    def test_same_file_through_different_spellings(self, tmp_path: Path) -> None:
        target = tmp_path / "book.epub"
        target.write_bytes(b"x")
        link = tmp_path / "alias.epub"
        link.symlink_to(target)
        assert canonical_key(link) == canonical_key(tmp_path / "." / "book.epub")

    def test_serializes_same_path(self, tmp_path: Path) -> None:
        locks = PathLocks()
        path = tmp_path / "book.epub"
        active = []
        overlaps = []

        def worker() -> None:
            with locks.hold(path):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert overlaps == []

    def test_different_paths_do_not_block(self, tmp_path: Path) -> None:
        locks = PathLocks()
        with locks.hold(tmp_path / "a.epub"):
            done = threading.Event()

            def other() -> None:
                with locks.hold(tmp_path / "b.epub"):
                    done.set()

            t = threading.Thread(target=other)
            t.start()
            t.join(timeout=2)
            assert done.is_set()

    def test_entries_dropped_after_release(self, tmp_path: Path) -> None:
        locks = PathLocks()
        for i in range(50):
            with locks.hold(tmp_path / f"book{i}.epub"):
                assert len(locks) == 1
        assert len(locks) == 0

    def test_locked_reflects_holder(self, tmp_path: Path) -> None:
        locks = PathLocks()
        path = tmp_path / "book.epub"
        assert locks.locked(path) is False
        with locks.hold(path):
            assert locks.locked(path) is True
            assert locks.locked(tmp_path / "other.epub") is False
        assert locks.locked(path) is False

    def test_entry_survives_while_another_thread_waits(self, tmp_path: Path) -> None:
        locks = PathLocks()
        path = tmp_path / "book.epub"
        waiting = threading.Event()
        entered = threading.Event()

        def waiter() -> None:
            waiting.set()
            with locks.hold(path):
                entered.set()

        with locks.hold(path):
            t = threading.Thread(target=waiter)
            t.start()
            waiting.wait(timeout=2)
            time.sleep(0.05)
            assert not entered.is_set()
            assert len(locks) == 1
        t.join(timeout=2)
        assert entered.is_set()
        assert len(locks) == 0

    def test_released_after_exception(self, tmp_path: Path) -> None:
        locks = PathLocks()
        path = tmp_path / "book.epub"
        try:
            with locks.hold(path):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert locks.locked(path) is False
        assert len(locks) == 0


class TestAccessTable:
    """Tests for AccessTable."""

    def test_add_and_remove_calls_release(self) -> None:
        table = AccessTable()
        release = MagicMock()
        table.add("/books", release)
        assert "/books" in table
        assert len(table) == 1

        assert table.remove("/books") is True
        release.assert_called_once_with()
        assert "/books" not in table
        assert table.remove("/books") is False

    def test_replacing_grant_releases_previous(self) -> None:
        table = AccessTable()
        first, second = MagicMock(), MagicMock()
        table.add("k", first)
        table.add("k", second)
        first.assert_called_once_with()
        second.assert_not_called()

    def test_access_skips_acquire_with_standing_lease(self) -> None:
        table = AccessTable()
        table.add("k", MagicMock())
        acquire = MagicMock()
        with table.access("k", acquire):
            pass
        acquire.assert_not_called()

    def test_access_acquires_and_releases_around_block(self) -> None:
        table = AccessTable()
        release = MagicMock()
        acquire = MagicMock(return_value=release)
        try:
            with table.access("k", acquire):
                acquire.assert_called_once_with()
                release.assert_not_called()
                raise ValueError("inside")
        except ValueError:
            pass
        release.assert_called_once_with()
        assert "k" not in table

    def test_release_all_continues_after_failure(self) -> None:
        table = AccessTable()
        bad = MagicMock(side_effect=RuntimeError("stale"))
        good = MagicMock()
        table.add("a", bad)
        table.add("b", good)
        table.release_all()
        good.assert_called_once_with()
        assert len(table) == 0
