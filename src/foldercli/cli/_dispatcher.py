"""
Auto-discovery CLI dispatcher for foldercli.

Every module in ``cli/commands`` is a subcommand. A command module provides
``SUMMARY``, ``register_args(parser)`` and ``main(args) -> int``.
"""
from __future__ import annotations

import argparse
import importlib
import logging
import sys
from functools import lru_cache
from pathlib import Path
from typing import Any

from foldercli import __version__
from foldercli.cli._output import OutputFormatter
from foldercli.core.exceptions import FolderCliError
from foldercli.core.log_setup import configure_logging

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def discover_root_commands() -> dict[str, dict[str, Any]]:
    """Discover subcommands under cli/commands."""
    commands_dir = Path(__file__).parent / "commands"
    commands: dict[str, dict[str, Any]] = {}
    if not commands_dir.exists():
        return commands

    for item in sorted(commands_dir.glob("*.py")):
        if item.name.startswith("_"):
            continue
        cmd_name = item.stem
        module = importlib.import_module(f"foldercli.cli.commands.{cmd_name}")
        commands[cmd_name] = {
            "module": module,
            "summary": getattr(module, "SUMMARY", cmd_name),
            "register_args": getattr(module, "register_args", None),
            "main": getattr(module, "main", None),
        }
    return commands


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="foldercli",
        description="Build a command line program from a directory of handler modules",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )
    for cmd_name, cmd_info in discover_root_commands().items():
        cmd_parser = subparsers.add_parser(cmd_name, help=cmd_info["summary"])
        if cmd_info["register_args"]:
            cmd_info["register_args"](cmd_parser)
        if cmd_info["main"]:
            cmd_parser.set_defaults(_func=cmd_info["main"])
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point of the ``foldercli`` console script."""
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    configure_logging(level="DEBUG" if getattr(args, "verbose", False) else "WARNING")

    func = getattr(args, "_func", None)
    if func is None:
        parser.print_help()
        return 0

    try:
        return int(func(args) or 0)
    except FolderCliError as exc:
        formatter = OutputFormatter(json_mode=bool(getattr(args, "json", False)))
        formatter.error(exc, error_code=type(exc).__name__)
        logger.debug("Command %s failed", args.command, exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
