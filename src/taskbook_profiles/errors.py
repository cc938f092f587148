"""Exceptions raised by the taskbook profile switchboard."""

from __future__ import annotations

from pathlib import Path


class TaskbookProfileError(Exception):
    """Base exception for profile switchboard errors."""

    def __init__(self, message: str, *, path: str | Path | None = None, cause: BaseException | None = None) -> None:
        self.message = message
        self.path = str(path) if path is not None else None
        self.cause = cause
        super().__init__(self._render())

    def _render(self) -> str:
        text = self.message
        if self.path is not None:
            text = f"{text} ({self.path})"
        if self.cause is not None:
            text = f"{text}: {self.cause}"
        return text


class PathNotFound(TaskbookProfileError):
    """A required file or directory does not exist."""


class ProfileNotFound(PathNotFound):
    """The profile to switch to has no storage file."""


class NoActiveProfile(PathNotFound):
    """There is no storage.json to park."""


class RenameFailed(TaskbookProfileError):
    pass


class WriteFailed(TaskbookProfileError):
    pass


class ReadFailed(TaskbookProfileError):
    pass


class InvalidProfileName(TaskbookProfileError):
    """Name collides with the active slot filenames or is blank."""


class LockBusy(TaskbookProfileError):
    """Another tbm process holds the root lock."""


class ConfigError(TaskbookProfileError):
    pass
