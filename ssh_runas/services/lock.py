"""Lock marker file guarding against overlapping runs.

The marker is advisory: existence is checked, then the file is written.
Two invocations racing inside that window can both proceed. Pass
``atomic=True`` to create the marker with O_CREAT | O_EXCL instead, which
closes the window on local filesystems.
"""

import logging
import os
from pathlib import Path

from ssh_runas.exceptions import RunAsError

logger = logging.getLogger(__name__)


class LockHeld(RunAsError):
    """A lock marker already exists at the configured path."""

    def __init__(self, path: str):
        """Initialize lock error.

        Args:
            path: Path of the existing marker
        """
        self.path = path
        super().__init__(f"Lockfile at '{path}' exists.  Command will not be run.")


class LockGuard:
    """Creates and removes the lock marker file."""

    def __init__(self, atomic: bool = False) -> None:
        """Initialize lock guard.

        Args:
            atomic: Create the marker with O_EXCL instead of check-then-write
        """
        self.atomic = atomic

    def acquire(self, path: str) -> None:
        """Create the lock marker containing the current PID.

        Args:
            path: Marker path, empty to disable locking

        Raises:
            LockHeld: If a marker already exists at path
        """
        if not path:
            logger.debug("Lockfile not specified, not creating one")
            return

        marker = Path(path)
        if marker.exists():
            raise LockHeld(path)

        logger.info("Creating lockfile at '%s'", path)
        pid = str(os.getpid())
        if self.atomic:
            try:
                fd = os.open(marker, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
            except FileExistsError:
                raise LockHeld(path) from None
            with os.fdopen(fd, "w") as f:
                f.write(pid)
        else:
            marker.write_text(pid)
        logger.info("Lockfile created!")

    def release(self, path: str) -> None:
        """Delete the lock marker.

        A missing marker is logged and otherwise ignored, so calling this
        twice is harmless.

        Args:
            path: Marker path, empty to disable locking
        """
        if not path:
            logger.debug("Lockfile not specified, not deleting one")
            return

        marker = Path(path)
        if not marker.exists():
            logger.warning("Lockfile '%s' specified, but does not exist, can not delete.", path)
            return

        logger.info("Deleting lockfile '%s'", path)
        marker.unlink(missing_ok=True)

