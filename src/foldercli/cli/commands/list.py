"""
foldercli list command.

SUMMARY: Show the commands discovered in the command tree
"""
from __future__ import annotations

import argparse

from foldercli.cli import OutputFormatter, add_app_dir_flag, add_json_flag, add_project_root_flag, get_project_root
from foldercli.core.builder import compile_app
from foldercli.core.config import load_build_config

SUMMARY = "Show the commands discovered in the command tree"


def register_args(parser: argparse.ArgumentParser) -> None:
    """Register command-specific arguments."""
    add_app_dir_flag(parser)
    add_json_flag(parser)
    add_project_root_flag(parser)


def _describe(route) -> dict:
    return {
        "path": route.path,
        "usage": route.display_path,
        "description": route.description,
        "aliases": list(route.aliases),
        "params": route.params is not None,
        "help": route.help is not None,
        "error": route.error is not None,
    }


def main(args: argparse.Namespace) -> int:
    """List commands."""
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    config = load_build_config(get_project_root(args), {"app_dir": args.app_dir})
    compiled = compile_app(config.app_dir, cli_name=config.cli_name, workers=config.workers)

    commands = [_describe(route) for route in compiled.table]
    if formatter.json_mode:
        formatter.json_output(
            {
                "app_dir": str(compiled.scan.app_dir),
                "commands": commands,
                "diagnostics": [str(d) for d in compiled.diagnostics],
            }
        )
        return 0

    if not commands:
        formatter.text(f"No commands found under {compiled.scan.app_dir}")
    width = max((len(c["usage"] or "(root)") for c in commands), default=0)
    for command in commands:
        usage = command["usage"] or "(root)"
        extras = [name for name in ("params", "help", "error") if command[name]]
        line = f"  {usage.ljust(width)}  {command['description'] or ''}".rstrip()
        if extras:
            line += f"  [{', '.join(extras)}]"
        formatter.text(line)
    for diagnostic in compiled.diagnostics:
        formatter.warning(str(diagnostic))
    return 0
