"""Tests for the lock marker guard."""

import logging
import os
from pathlib import Path

import pytest

from ssh_runas.services.lock import LockGuard, LockHeld


def test_acquire_writes_pid(lock_path: Path) -> None:
    """Marker is created containing the current process id."""
    LockGuard().acquire(str(lock_path))

    assert lock_path.read_text() == str(os.getpid())


def test_acquire_existing_marker_raises_and_leaves_it(lock_path: Path) -> None:
    """Existing marker is neither rewritten nor deleted."""
    lock_path.write_text("12345")

    with pytest.raises(LockHeld) as exc_info:
        LockGuard().acquire(str(lock_path))

    assert exc_info.value.path == str(lock_path)
    assert str(lock_path) in str(exc_info.value)
    assert lock_path.read_text() == "12345"


def test_empty_path_disables_locking(tmp_path: Path) -> None:
    """Empty path is a no-op for both acquire and release."""
    guard = LockGuard()

    guard.acquire("")
    guard.release("")

    assert list(tmp_path.iterdir()) == []


def test_release_deletes_marker(lock_path: Path) -> None:
    """Release removes a marker created by acquire."""
    guard = LockGuard()
    guard.acquire(str(lock_path))

    guard.release(str(lock_path))

    assert not lock_path.exists()


def test_release_missing_marker_twice_is_logged_noop(
    lock_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """Releasing a missing marker never raises, it only warns."""
    caplog.set_level(logging.WARNING, logger="ssh_runas")
    guard = LockGuard()

    guard.release(str(lock_path))
    guard.release(str(lock_path))

    warnings = [r for r in caplog.records if "does not exist" in r.getMessage()]
    assert len(warnings) == 2
    assert all(r.levelno == logging.WARNING for r in warnings)


class TestAtomicLock:
    """Optional O_EXCL marker creation."""

    def test_creates_marker(self, lock_path: Path) -> None:
        """Atomic mode writes the pid too."""
        LockGuard(atomic=True).acquire(str(lock_path))

        assert lock_path.read_text() == str(os.getpid())

    def test_existing_marker_raises(self, lock_path: Path) -> None:
        """Atomic mode reports an existing marker as LockHeld."""
        lock_path.write_text("other")

        with pytest.raises(LockHeld):
            LockGuard(atomic=True).acquire(str(lock_path))

        assert lock_path.read_text() == "other"

    def test_race_after_existence_check_raises(
        self, lock_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Marker appearing after the existence check still loses the race."""
        lock_path.write_text("winner")
        monkeypatch.setattr(Path, "exists", lambda self: False)

        with pytest.raises(LockHeld):
            LockGuard(atomic=True).acquire(str(lock_path))

        assert lock_path.read_text() == "winner"
