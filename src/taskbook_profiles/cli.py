"""CLI entrypoint for the taskbook profile switcher (``tbm``)."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from .config import TaskbookConfig, resolve_root
from .errors import TaskbookProfileError
from .switchboard import ProfileSwitchboard

DEBUG_SENTINEL = Path("DEBUG")

METHOD_ALIASES = {
    "switch": "switch",
    "-s": "switch",
    "--switch": "switch",
    "rename": "rename",
    "-r": "rename",
    "--rename": "rename",
    "new": "new",
    "-n": "new",
    "--new": "new",
    "profile": "profile",
    "-p": "profile",
    "--profile": "profile",
    "all-profiles": "all-profiles",
    "-a": "all-profiles",
    "--all-profiles": "all-profiles",
    "status": "status",
    "help": "help",
    "-h": "help",
    "--help": "help",
}

_GLOBAL_OPTIONS_WITH_VALUE = {"--root", "--env-file"}

HELP_EPILOG = """\
tbm extends taskbook with switchable profiles.

methods:
  switch <name>     switch to another profile          tbm -s private / tbm switch private
  rename <name>     rename the current profile         tbm -r default / tbm rename default
  new [<name>]      create a new, empty profile        tbm -n work / tbm new
  profile           show the current profile           tbm -p / tbm profile
  all-profiles      list all available profiles        tbm -a / tbm all-profiles
  status            show the active slot and any unfinished switch
  help              this message                       tbm -h / tbm help
"""


@dataclass(frozen=True)
class SwitchCommand:
    name: str


@dataclass(frozen=True)
class RenameCommand:
    name: str


@dataclass(frozen=True)
class NewCommand:
    name: str = ""


@dataclass(frozen=True)
class ShowProfileCommand:
    pass


@dataclass(frozen=True)
class ListProfilesCommand:
    pass


@dataclass(frozen=True)
class StatusCommand:
    pass


@dataclass(frozen=True)
class HelpCommand:
    pass


Command = Union[
    SwitchCommand,
    RenameCommand,
    NewCommand,
    ShowProfileCommand,
    ListProfilesCommand,
    StatusCommand,
    HelpCommand,
]


def _normalize_argv(argv: list[str]) -> list[str]:
    """Map the method token and its short/long aliases onto subcommand names."""
    out = list(argv)
    idx = 0
    while idx < len(out):
        token = out[idx]
        if token in _GLOBAL_OPTIONS_WITH_VALUE:
            idx += 2
            continue
        if token.startswith("--root=") or token.startswith("--env-file="):
            idx += 1
            continue
        if token in {"-v", "--verbose", "-q", "--quiet", "--json"}:
            idx += 1
            continue
        out[idx] = METHOD_ALIASES.get(token.lower(), token)
        break
    return out


class UsageError(Exception):
    """Raised instead of argparse's stderr-and-exit on bad arguments."""


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise UsageError(message)


def _build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="tbm",
        description="Profile switcher for taskbook",
        epilog=HELP_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    parser.add_argument("--root", default="", help="taskbook root directory (default: $TBM_ROOT or ~/.taskbook)")
    parser.add_argument("--env-file", default="", help="optional path to .env.tbm")
    parser.add_argument("--json", action="store_true", help="print results as JSON")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true")
    verbosity.add_argument("-q", "--quiet", action="store_true")

    sub = parser.add_subparsers(dest="method", required=True, metavar="method")
    switch = sub.add_parser("switch", help="switch to another profile")
    switch.add_argument("name")
    rename = sub.add_parser("rename", help="rename the current profile")
    rename.add_argument("name")
    new = sub.add_parser("new", help="create a new profile")
    new.add_argument("name", nargs="?", default="")
    sub.add_parser("profile", help="show the current profile")
    sub.add_parser("all-profiles", help="list all available profiles")
    sub.add_parser("status", help="show the active slot and any unfinished switch")
    sub.add_parser("help", help="show this message")
    return parser


def _command_from_args(args: argparse.Namespace) -> Command:
    if args.method == "switch":
        return SwitchCommand(name=args.name)
    if args.method == "rename":
        return RenameCommand(name=args.name)
    if args.method == "new":
        return NewCommand(name=args.name)
    if args.method == "profile":
        return ShowProfileCommand()
    if args.method == "all-profiles":
        return ListProfilesCommand()
    if args.method == "status":
        return StatusCommand()
    return HelpCommand()


def _configure_logging(level: str) -> None:
    logger = logging.getLogger("taskbook_profiles")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def _log_level(cfg: TaskbookConfig, args: argparse.Namespace) -> str:
    if args.verbose:
        return "DEBUG"
    if args.quiet:
        return "WARNING"
    return cfg.log_level


def run_command(board: ProfileSwitchboard, command: Command) -> tuple[dict[str, Any], str]:
    """Execute one command and return its JSON payload and text rendering."""
    if isinstance(command, SwitchCommand):
        result = board.activate(command.name)
        return {"ok": True, **result.as_dict()}, f"Switched profile: {result.previous} -> {result.current}"
    if isinstance(command, RenameCommand):
        board.rename_current(command.name)
        return {"ok": True, "profile": command.name}, f"Renamed current profile to: {command.name}"
    if isinstance(command, NewCommand):
        created = board.create(command.name)
        return {"ok": True, "created": created}, f"Created profile: {created}"
    if isinstance(command, ShowProfileCommand):
        name = board.current_profile_name()
        return {"ok": True, "profile": name}, f"Current profile: {name}"
    if isinstance(command, ListProfilesCommand):
        profiles = board.list_profiles()
        lines = ["Available profiles:", ""] + [f"- {item}" for item in profiles]
        return {"ok": True, "profiles": profiles}, "\n".join(lines)
    if isinstance(command, StatusCommand):
        snapshot = board.snapshot()
        lines = [
            f"Current profile: {snapshot.profile}",
            f"Storage active: {'yes' if snapshot.storage_active else 'no'}",
            f"Archive active: {'yes' if snapshot.archive_active else 'no'}",
        ]
        pending = snapshot.pending_switch
        if pending:
            steps = ", ".join(pending["completed_steps"]) or "none"
            lines.append(f"Unfinished switch: {pending['from']} -> {pending['to']} (completed: {steps})")
        return {"ok": True, **snapshot.as_dict()}, "\n".join(lines)
    raise TypeError(f"unsupported command: {command!r}")


def _debug_dump(cfg: TaskbookConfig, board: ProfileSwitchboard, method: str) -> None:
    payload = {
        "config": cfg.as_dict(),
        "method": method,
        "layout": board.snapshot().as_dict(),
    }
    print("\nConfig-Dump:")
    print(json.dumps(payload, indent=2, sort_keys=True))


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(_normalize_argv(sys.argv[1:] if argv is None else argv))
    except UsageError as err:
        print(f"{err}\n\nTry 'tbm help' for more information.")
        return 1
    command = _command_from_args(args)
    if isinstance(command, HelpCommand):
        print(parser.format_help())
        return 0

    root = resolve_root(args.root)
    try:
        env_file = Path(args.env_file).expanduser().resolve() if args.env_file else None
        cfg = TaskbookConfig.from_root(root, env_file_override=env_file)
        _configure_logging(_log_level(cfg, args))
        board = ProfileSwitchboard(cfg)
        board.ensure_layout()
        payload, text = run_command(board, command)
        if args.json:
            print(json.dumps(payload, indent=2, sort_keys=True))
        else:
            print(text)
        if DEBUG_SENTINEL.exists():
            _debug_dump(cfg, board, args.method)
    except TaskbookProfileError as err:
        print(
            json.dumps(
                {
                    "ok": False,
                    "error": str(err),
                    "error_type": type(err).__name__,
                    "command": args.method,
                    "root": str(root),
                },
                indent=2,
                sort_keys=True,
            )
        )
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
