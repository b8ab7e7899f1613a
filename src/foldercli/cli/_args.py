"""Common CLI argument registration utilities."""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional


def add_json_flag(parser: argparse.ArgumentParser) -> None:
    """Add --json flag for JSON output mode."""
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )


def add_project_root_flag(parser: argparse.ArgumentParser) -> None:
    """Add --project-root flag (directory holding foldercli.yaml)."""
    parser.add_argument(
        "--project-root",
        type=str,
        help="Project root (defaults to the current directory)",
    )


def add_app_dir_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--app-dir",
        type=str,
        help="Directory holding the command tree (default: app)",
    )


def add_verbose_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=None,
        help="Log progress to stderr",
    )


def get_project_root(args: argparse.Namespace) -> Optional[Path]:
    value = getattr(args, "project_root", None)
    return Path(value).resolve() if value else None


__all__ = [
    "add_app_dir_flag",
    "add_json_flag",
    "add_project_root_flag",
    "add_verbose_flag",
    "get_project_root",
]
