"""Durable intent record for an in-flight profile switch.

A switch is several renames plus a pointer write, none of which are atomic
as a group. The journal is written before the first rename, rewritten after
every completed step and removed once the pointer is updated. A journal that
survives a run means the switch stopped part way; nothing here repairs that,
it only makes the partial state visible.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import WriteFailed

STEP_PARK_STORAGE = "park_storage"
STEP_PARK_ARCHIVE = "park_archive"
STEP_PROMOTE_STORAGE = "promote_storage"
STEP_PROMOTE_ARCHIVE = "promote_archive"
STEP_WRITE_POINTER = "write_pointer"

SWITCH_STEPS = (
    STEP_PARK_STORAGE,
    STEP_PARK_ARCHIVE,
    STEP_PROMOTE_STORAGE,
    STEP_PROMOTE_ARCHIVE,
    STEP_WRITE_POINTER,
)

_logger = logging.getLogger("taskbook_profiles.journal")


def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def _write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, indent=2, sort_keys=True) + "\n")
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    finally:
        if os.path.exists(temp_path):
            os.unlink(temp_path)


@dataclass
class SwitchJournal:
    path: Path
    source: str
    target: str
    started_at: str = field(default_factory=_now_iso)
    updated_at: str = ""
    completed_steps: list[str] = field(default_factory=list)

    @classmethod
    def begin(cls, path: Path, *, source: str, target: str) -> "SwitchJournal":
        journal = cls(path=path, source=source, target=target)
        journal.flush()
        return journal

    def record(self, step: str) -> None:
        if step not in SWITCH_STEPS:
            raise ValueError(f"unknown switch step: {step}")
        self.completed_steps.append(step)
        try:
            self.flush()
        except WriteFailed as err:
            # best-effort once renames are underway
            _logger.warning("could not record switch step %s: %s", step, err)

    def flush(self) -> None:
        self.updated_at = _now_iso()
        try:
            _write_json_atomic(self.path, self.as_dict())
        except OSError as err:
            raise WriteFailed("could not write switch journal", path=self.path, cause=err) from err

    def finish(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as err:
            _logger.warning("could not remove switch journal %s: %s", self.path, err)

    def as_dict(self) -> dict[str, Any]:
        return {
            "from": self.source,
            "to": self.target,
            "started_at": self.started_at,
            "updated_at": self.updated_at,
            "completed_steps": list(self.completed_steps),
        }


def read_journal(path: Path) -> SwitchJournal | None:
    if not path.exists():
        return None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as err:
        _logger.warning("ignoring unreadable switch journal %s: %s", path, err)
        return None
    if not isinstance(raw, dict):
        _logger.warning("ignoring malformed switch journal %s", path)
        return None
    steps = raw.get("completed_steps", [])
    if not isinstance(steps, list):
        steps = []
    return SwitchJournal(
        path=path,
        source=str(raw.get("from", "")),
        target=str(raw.get("to", "")),
        started_at=str(raw.get("started_at", "")),
        updated_at=str(raw.get("updated_at", "")),
        completed_steps=[str(step) for step in steps if str(step) in SWITCH_STEPS],
    )
