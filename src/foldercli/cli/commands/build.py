"""
foldercli build command.

SUMMARY: Generate the dispatcher from the command tree
"""
from __future__ import annotations

import argparse

from foldercli.cli import (
    OutputFormatter,
    add_app_dir_flag,
    add_json_flag,
    add_project_root_flag,
    add_verbose_flag,
    get_project_root,
)
from foldercli.core.builder import build_cli
from foldercli.core.config import load_build_config
from foldercli.core.log_setup import configure_logging

SUMMARY = "Generate the dispatcher from the command tree"


def register_args(parser: argparse.ArgumentParser) -> None:
    """Register command-specific arguments."""
    add_app_dir_flag(parser)
    parser.add_argument("--output-dir", type=str, help="Directory for generated files (default: dist)")
    parser.add_argument("--cli-name", type=str, help="Program name shown in help and usage")
    parser.add_argument("--output-filename", type=str, help="Dispatcher file name (default: cli.py)")
    parser.add_argument("--version", dest="cli_version", type=str, help="Version string of the generated CLI")
    parser.add_argument("--description", type=str, help="One-line description of the generated CLI")
    parser.add_argument("--workers", type=int, help="Parser threads (default: 4)")
    parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Fail when any module has no usable export",
    )
    add_verbose_flag(parser)
    add_json_flag(parser)
    add_project_root_flag(parser)


def _overrides(args: argparse.Namespace) -> dict:
    return {
        "app_dir": args.app_dir,
        "output_dir": args.output_dir,
        "cli_name": args.cli_name,
        "output_filename": args.output_filename,
        "version": args.cli_version,
        "description": args.description,
        "workers": args.workers,
        "strict": args.strict,
        "verbose": args.verbose,
    }


def main(args: argparse.Namespace) -> int:
    """Build the dispatcher."""
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    config = load_build_config(get_project_root(args), _overrides(args))
    if config.verbose:
        configure_logging(level="DEBUG")

    result = build_cli(config)

    for warning in result.compiled.scan.warnings:
        formatter.warning(warning)
    for diagnostic in result.diagnostics:
        formatter.warning(str(diagnostic))

    count = len(result.compiled.table)
    state = "Wrote" if result.written else "Up to date:"
    formatter.success(result.to_dict(), f"{state} {result.output_path} ({count} command(s))")
    if result.env_types_path is not None:
        formatter.text_kv("env types", result.env_types_path)
    return 0
