"""
foldercli init command.

SUMMARY: Scaffold a new foldercli project
"""
from __future__ import annotations

import argparse
import re
from pathlib import Path
from typing import List

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from foldercli.cli import OutputFormatter, add_json_flag
from foldercli.core.exceptions import ConfigurationError
from foldercli.core.io import write_text_atomic
from foldercli.data import get_data_path

SUMMARY = "Scaffold a new foldercli project"

TEMPLATE_SUFFIX = ".j2"


def register_args(parser: argparse.ArgumentParser) -> None:
    """Register command-specific arguments."""
    parser.add_argument("project_name", help="Directory to create (its name becomes the CLI name)")
    parser.add_argument("--force", action="store_true", help="Overwrite existing files")
    add_json_flag(parser)


def cli_name_for(project_name: str) -> str:
    """A CLI name accepted by the build configuration schema."""
    name = re.sub(r"[^A-Za-z0-9_-]+", "-", project_name).strip("-_")
    if not name or not name[0].isalpha():
        name = f"cli-{name}" if name else "cli"
    return name


def scaffold_project(target: Path, *, cli_name: str, force: bool = False) -> List[Path]:
    """Render the bundled scaffold into ``target`` and return written paths."""
    source = get_data_path("scaffold")
    templates = sorted(p for p in source.rglob(f"*{TEMPLATE_SUFFIX}") if p.is_file())
    destinations = [target / p.relative_to(source).with_suffix("") for p in templates]

    existing = [d for d in destinations if d.exists()]
    if existing and not force:
        raise ConfigurationError(
            f"Refusing to overwrite {len(existing)} existing file(s); use --force",
            context={"files": [str(p) for p in existing]},
        )

    env = Environment(
        loader=FileSystemLoader(str(source)),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    for template_path, dest in zip(templates, destinations):
        name = template_path.relative_to(source).as_posix()
        write_text_atomic(dest, env.get_template(name).render(cli_name=cli_name))
    return destinations


def main(args: argparse.Namespace) -> int:
    """Create the project skeleton."""
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    target = Path(args.project_name).resolve()
    written = scaffold_project(target, cli_name=cli_name_for(target.name), force=args.force)
    formatter.success(
        {"project": str(target), "files": [str(p) for p in written]},
        f"Created {target} ({len(written)} files). Next: cd {args.project_name} && foldercli build",
    )
    return 0
