"""Profile switchboard: moves profile files in and out of taskbook's active slot.

Taskbook only ever reads ``storage/storage.json`` and ``archive/archive.json``.
Every other profile is parked next to them as ``<name>.json``. Switching
parks the active files under the current profile's name, promotes the
target's files into the active slot and rewrites the pointer file.

Storage files are load-bearing and any failure around them aborts the
switch. Archive files are best-effort: a missing archive is logged and
skipped, never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config import TaskbookConfig
from .errors import (
    InvalidProfileName,
    NoActiveProfile,
    PathNotFound,
    ProfileNotFound,
    ReadFailed,
    RenameFailed,
    WriteFailed,
)
from .journal import (
    STEP_PARK_ARCHIVE,
    STEP_PARK_STORAGE,
    STEP_PROMOTE_ARCHIVE,
    STEP_PROMOTE_STORAGE,
    STEP_WRITE_POINTER,
    SwitchJournal,
    read_journal,
)
from .locking import root_lock

RESERVED_NAMES = {"storage", "archive"}
AUTO_NAME_TOKENS = {"", " ", "-"} | RESERVED_NAMES
AUTO_NAME_PREFIX = "new"
EMPTY_PROFILE = "{}"

_logger = logging.getLogger("taskbook_profiles.switchboard")


def profile_filename(name: str) -> str:
    return f"{name}.json"


def require_path(path: Path, message: str = "path does not exist", error_cls: type[PathNotFound] = PathNotFound) -> Path:
    if not path.exists():
        raise error_cls(message, path=path)
    return path


def write_text(path: Path, data: str) -> None:
    try:
        path.write_text(data, encoding="utf-8")
    except OSError as err:
        raise WriteFailed("could not write file", path=path, cause=err) from err


def move(src: Path, dst: Path) -> None:
    _logger.debug("rename %s -> %s", src, dst)
    try:
        src.replace(dst)
    except OSError as err:
        raise RenameFailed(f"could not rename to {dst.name}", path=src, cause=err) from err


@dataclass(frozen=True)
class SwitchResult:
    previous: str
    current: str
    archive_parked: bool
    archive_promoted: bool

    def as_dict(self) -> dict[str, Any]:
        return {
            "previous": self.previous,
            "current": self.current,
            "archive_parked": self.archive_parked,
            "archive_promoted": self.archive_promoted,
        }


@dataclass(frozen=True)
class LayoutSnapshot:
    root_dir: str
    profile: str
    storage_active: bool
    archive_present: bool
    archive_active: bool
    pending_switch: dict[str, Any] | None

    def as_dict(self) -> dict[str, Any]:
        return {
            "root_dir": self.root_dir,
            "profile": self.profile,
            "storage_active": self.storage_active,
            "archive_present": self.archive_present,
            "archive_active": self.archive_active,
            "pending_switch": self.pending_switch,
        }


class ProfileSwitchboard:
    def __init__(self, config: TaskbookConfig) -> None:
        self.config = config

    def _lock(self):
        return root_lock(self.config.lock_file, timeout_sec=self.config.lock_timeout_sec)

    def _read_pointer(self) -> str | None:
        pointer = self.config.pointer_file
        if not pointer.exists():
            return None
        try:
            return pointer.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as err:
            raise ReadFailed("could not read profile pointer", path=pointer, cause=err) from err

    def peek_profile_name(self) -> str:
        """Like :meth:`current_profile_name` but never writes the pointer file."""
        return self._read_pointer() or self.config.default_profile

    def current_profile_name(self) -> str:
        """Return the active profile name, creating the pointer file if needed."""
        pointer = self.config.pointer_file
        default = self.config.default_profile
        name = self._read_pointer()
        if name is None:
            write_text(pointer, default)
            return default
        if not name:
            _logger.warning("Profile name in %s is empty, resetting it to %r.", pointer, default)
            write_text(pointer, default)
            return default
        return name

    def list_profiles(self) -> list[str]:
        storage = require_path(self.config.storage_dir, "storage directory does not exist")
        return sorted(entry.name for entry in storage.iterdir())

    def pending_switch(self) -> SwitchJournal | None:
        return read_journal(self.config.journal_file)

    def ensure_layout(self) -> None:
        require_path(self.config.root_dir, "taskbook root does not exist")
        require_path(self.config.storage_dir, "storage directory does not exist")
        if not self.config.archive_dir.exists():
            _logger.info("Archive directory %s does not exist, continuing.", self.config.archive_dir)
        elif not self.config.active_archive_file.exists():
            _logger.info("Archive is not active (%s missing), continuing.", self.config.active_archive_file)

    def snapshot(self) -> LayoutSnapshot:
        journal = self.pending_switch()
        return LayoutSnapshot(
            root_dir=str(self.config.root_dir),
            profile=self.peek_profile_name(),
            storage_active=self.config.active_storage_file.exists(),
            archive_present=self.config.archive_dir.exists(),
            archive_active=self.config.active_archive_file.exists(),
            pending_switch=journal.as_dict() if journal else None,
        )

    def activate(self, target: str) -> SwitchResult:
        """Swap ``target`` into the active slot and park the current profile.

        There is no rollback: a failure after the first rename leaves the
        files where the completed steps put them, with the switch journal
        on disk describing how far it got.
        """
        if not target.strip() or target in RESERVED_NAMES:
            raise InvalidProfileName(f"{target!r} cannot be used as a profile name")

        storage_dir = self.config.storage_dir
        archive_dir = self.config.archive_dir
        target_file = profile_filename(target)

        with self._lock():
            stale = self.pending_switch()
            if stale is not None:
                _logger.warning(
                    "Previous switch from %r to %r did not finish (completed: %s).",
                    stale.source,
                    stale.target,
                    ", ".join(stale.completed_steps) or "none",
                )

            target_storage = require_path(
                storage_dir / target_file,
                f"profile {target!r} does not exist",
                ProfileNotFound,
            )
            target_archive = archive_dir / target_file
            has_target_archive = target_archive.exists()
            if not has_target_archive:
                _logger.info("Archive %s does not exist, continuing.", target_archive)

            active_storage = require_path(
                self.config.active_storage_file,
                "no active profile to switch away from",
                NoActiveProfile,
            )

            current = self.current_profile_name()
            if current in RESERVED_NAMES:
                raise InvalidProfileName(
                    f"current profile {current!r} cannot be parked, rename it first",
                    path=self.config.pointer_file,
                )
            if current == target:
                raise InvalidProfileName(
                    f"profile {target!r} is already active",
                    path=target_storage,
                )
            parked_file = profile_filename(current)
            journal = SwitchJournal.begin(self.config.journal_file, source=current, target=target)

            move(active_storage, storage_dir / parked_file)
            journal.record(STEP_PARK_STORAGE)

            archive_parked = False
            archive_slot_free = True
            active_archive = self.config.active_archive_file
            if active_archive.exists():
                try:
                    move(active_archive, archive_dir / parked_file)
                except RenameFailed as err:
                    # archive.json is still occupied, so the target archive stays parked
                    _logger.warning("Could not park %s, skipping archive swap: %s", active_archive, err)
                    archive_slot_free = False
                else:
                    archive_parked = True
                    journal.record(STEP_PARK_ARCHIVE)
            else:
                _logger.info("Archive %s does not exist, skip.", active_archive)

            move(target_storage, self.config.active_storage_file)
            journal.record(STEP_PROMOTE_STORAGE)

            archive_promoted = False
            if has_target_archive and archive_slot_free:
                move(target_archive, active_archive)
                archive_promoted = True
                journal.record(STEP_PROMOTE_ARCHIVE)

            write_text(self.config.pointer_file, target)
            journal.record(STEP_WRITE_POINTER)
            journal.finish()

        _logger.debug("switched profile %r -> %r", current, target)
        return SwitchResult(
            previous=current,
            current=target,
            archive_parked=archive_parked,
            archive_promoted=archive_promoted,
        )

    def next_auto_name(self) -> str:
        seq = 0
        while True:
            candidate = f"{AUTO_NAME_PREFIX}{seq}"
            filename = profile_filename(candidate)
            if not (self.config.storage_dir / filename).exists() and not (self.config.archive_dir / filename).exists():
                return candidate
            seq += 1

    def create(self, name: str = "") -> str:
        """Write an empty profile to both directories and return its name."""
        with self._lock():
            if name in AUTO_NAME_TOKENS:
                name = self.next_auto_name()
            filename = profile_filename(name)
            write_text(self.config.storage_dir / filename, EMPTY_PROFILE)
            write_text(self.config.archive_dir / filename, EMPTY_PROFILE)
        _logger.debug("created profile %r", name)
        return name

    def rename_current(self, new_name: str) -> None:
        with self._lock():
            write_text(self.config.pointer_file, new_name)
