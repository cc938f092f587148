"""Exclusive advisory lock on the taskbook root."""

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from .errors import LockBusy, PathNotFound, WriteFailed

POLL_INTERVAL_SEC = 0.05

_logger = logging.getLogger("taskbook_profiles.locking")


def _try_lock(handle: Any) -> bool:
    try:
        if os.name == "nt":
            import msvcrt

            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
        else:
            import fcntl

            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        return True
    except OSError:
        return False


def _release(handle: Any) -> None:
    try:
        if os.name == "nt":
            import msvcrt

            msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
        else:
            import fcntl

            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    except OSError as err:
        _logger.debug("releasing lock failed: %s", err)
    finally:
        handle.close()


@contextmanager
def root_lock(path: Path, timeout_sec: float = 0.0) -> Iterator[Path]:
    """Hold an exclusive lock on ``path`` for the duration of the block.

    Polls until ``timeout_sec`` elapses and raises :class:`LockBusy` if the
    lock is still held elsewhere. The lock is released on every exit path.
    The parent directory is never created; a missing one raises
    :class:`PathNotFound`.
    """
    try:
        handle = path.open("a+", encoding="utf-8")
    except FileNotFoundError as err:
        raise PathNotFound("taskbook root does not exist", path=path.parent, cause=err) from err
    except OSError as err:
        raise WriteFailed("could not open lock file", path=path, cause=err) from err
    deadline = time.monotonic() + max(0.0, float(timeout_sec))
    while not _try_lock(handle):
        if time.monotonic() >= deadline:
            handle.close()
            raise LockBusy("another tbm process is using the taskbook root", path=path)
        time.sleep(POLL_INTERVAL_SEC)
    _logger.debug("acquired lock %s", path)
    try:
        yield path
    finally:
        _release(handle)
        _logger.debug("released lock %s", path)
