"""Resolved paths and settings for one tbm invocation."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ConfigError

DEFAULT_ROOT = Path("~/.taskbook")
DEFAULT_PROFILE = "default"
DEFAULT_LOCK_TIMEOUT_SEC = 5.0
SETTINGS_FILENAME = "tbm.yaml"
ENV_FILENAME = ".env.tbm"
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


def _load_env_file(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise ConfigError("could not read env file", path=path, cause=err) from err
    data: dict[str, str] = {}
    for line in text.splitlines():
        raw = line.strip()
        if not raw or raw.startswith("#") or "=" not in raw:
            continue
        if raw.startswith("export "):
            raw = raw[len("export ") :].strip()
        key, value = raw.split("=", 1)
        data[key.strip()] = value.strip().strip("\"").strip("'")
    return data


def _load_structured_payload(raw_text: str) -> Any:
    try:
        return json.loads(raw_text)
    except Exception:
        import yaml

        return yaml.safe_load(raw_text)


def _read_settings_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        payload = _load_structured_payload(path.read_text(encoding="utf-8"))
    except Exception as err:  # noqa: BLE001
        raise ConfigError("settings file is not valid JSON or YAML", path=path, cause=err) from err
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigError("settings file root must be a mapping", path=path)
    return payload


def resolve_root(raw: str | Path | None = None) -> Path:
    value = str(raw or "").strip() or str(os.environ.get("TBM_ROOT", "")).strip()
    path = Path(value) if value else DEFAULT_ROOT
    return path.expanduser().resolve()


@dataclass(frozen=True)
class TaskbookConfig:
    root_dir: Path
    pointer_file: Path
    storage_dir: Path
    archive_dir: Path
    lock_file: Path
    journal_file: Path
    settings_file: Path
    default_profile: str = DEFAULT_PROFILE
    lock_timeout_sec: float = DEFAULT_LOCK_TIMEOUT_SEC
    log_level: str = "INFO"

    @classmethod
    def from_root(cls, root: Path, env_file_override: Path | None = None) -> "TaskbookConfig":
        root = root.expanduser().resolve()
        settings_file = root / SETTINGS_FILENAME
        settings = _read_settings_file(settings_file)
        env_file = env_file_override.resolve() if env_file_override else root / ENV_FILENAME
        merged = {**_load_env_file(env_file), **os.environ}

        def _value(env_key: str, settings_key: str, default: Any) -> Any:
            raw = merged.get(env_key)
            if raw is not None and str(raw).strip():
                return raw
            if settings.get(settings_key) is not None:
                return settings[settings_key]
            return default

        def _path(env_key: str, settings_key: str, default: Path) -> Path:
            path = Path(str(_value(env_key, settings_key, default))).expanduser()
            if not path.is_absolute():
                path = root / path
            return path.resolve()

        def _float(env_key: str, settings_key: str, default: float) -> float:
            raw = _value(env_key, settings_key, default)
            try:
                return max(0.0, float(raw))
            except (TypeError, ValueError):
                return default

        default_profile = str(_value("TBM_DEFAULT_PROFILE", "default_profile", DEFAULT_PROFILE)).strip()
        log_level = str(_value("TBM_LOG_LEVEL", "log_level", "INFO")).strip().upper()
        if log_level not in VALID_LOG_LEVELS:
            log_level = "INFO"

        return cls(
            root_dir=root,
            pointer_file=_path("TBM_PROFILE_FILE", "pointer_file", root / "tbm.profile"),
            storage_dir=_path("TBM_STORAGE_DIR", "storage_dir", root / "storage"),
            archive_dir=_path("TBM_ARCHIVE_DIR", "archive_dir", root / "archive"),
            lock_file=root / ".tbm.lock",
            journal_file=root / ".tbm-switch.json",
            settings_file=settings_file,
            default_profile=default_profile or DEFAULT_PROFILE,
            lock_timeout_sec=_float("TBM_LOCK_TIMEOUT_SEC", "lock_timeout_sec", DEFAULT_LOCK_TIMEOUT_SEC),
            log_level=log_level,
        )

    @property
    def active_storage_file(self) -> Path:
        return self.storage_dir / "storage.json"

    @property
    def active_archive_file(self) -> Path:
        return self.archive_dir / "archive.json"

    def as_dict(self) -> dict[str, Any]:
        return {
            "root_dir": str(self.root_dir),
            "pointer_file": str(self.pointer_file),
            "storage_dir": str(self.storage_dir),
            "archive_dir": str(self.archive_dir),
            "lock_file": str(self.lock_file),
            "journal_file": str(self.journal_file),
            "settings_file": str(self.settings_file),
            "default_profile": self.default_profile,
            "lock_timeout_sec": self.lock_timeout_sec,
            "log_level": self.log_level,
        }
