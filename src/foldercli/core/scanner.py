"""
Directory scanner for the command tree.

Walks the app directory and classifies files by convention:

    app/
        command.py            -> root (default) command
        middleware.py         -> root-level middleware chain
        global_error.py       -> root-level error handler
        env.py                -> environment schema
        version.py            -> version descriptor
        user/
            create/
                command.py    -> `cli user create`
                params.py     -> parameter mapping / schema
                help.py       -> help descriptor
                error.py      -> command-local error handler
            [id]/command.py   -> `cli user <id>`
        files/[...paths]/command.py -> `cli files [paths...]`
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from foldercli.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

COMMAND_FILE = "command.py"
COMPANION_FILES = {
    "params": "params.py",
    "help": "help.py",
    "error": "error.py",
}
ROOT_FILES = {
    "middleware": "middleware.py",
    "global_error": "global_error.py",
    "env": "env.py",
    "version": "version.py",
}


@dataclass(frozen=True)
class DynamicParam:
    name: str
    optional: bool = False

    @property
    def segment(self) -> str:
        return f"[...{self.name}]" if self.optional else f"[{self.name}]"


def is_dynamic_segment(name: str) -> bool:
    return len(name) > 2 and name.startswith("[") and name.endswith("]")


def parse_dynamic_segment(name: str) -> DynamicParam:
    """Parse ``[id]`` / ``[...rest]`` into a :class:`DynamicParam`."""
    content = name[1:-1]
    optional = content.startswith("...")
    param_name = content[3:] if optional else content
    if not param_name.isidentifier():
        raise ConfigurationError(
            f"Invalid dynamic segment {name!r}: parameter name must be an identifier",
            context={"segment": name},
        )
    return DynamicParam(name=param_name, optional=optional)


@dataclass(frozen=True)
class HandlerSet:
    """Companion modules found next to a ``command.py``."""

    params: Optional[Path] = None
    help: Optional[Path] = None
    error: Optional[Path] = None


@dataclass(frozen=True)
class CommandNode:
    """One routable command discovered on disk."""

    segments: Tuple[str, ...]
    dynamic_params: Tuple[DynamicParam, ...]
    command_file: Path
    handlers: HandlerSet = field(default_factory=HandlerSet)

    @property
    def path(self) -> str:
        return "/".join(self.segments)

    @property
    def depth(self) -> int:
        return len(self.segments)

    @property
    def has_params(self) -> bool:
        return self.handlers.params is not None

    @property
    def has_help(self) -> bool:
        return self.handlers.help is not None

    @property
    def has_error(self) -> bool:
        return self.handlers.error is not None


@dataclass(frozen=True)
class RootHandlers:
    middleware: Optional[Path] = None
    global_error: Optional[Path] = None
    env: Optional[Path] = None
    version: Optional[Path] = None


@dataclass(frozen=True)
class ScanResult:
    app_dir: Path
    commands: Tuple[CommandNode, ...]
    root: RootHandlers
    warnings: Tuple[str, ...] = ()

    def module_paths(self) -> List[Tuple[Path, str]]:
        """Every discovered module as ``(path, role)``, sorted by path."""
        jobs: List[Tuple[Path, str]] = []
        for node in self.commands:
            jobs.append((node.command_file, "command"))
            for role in COMPANION_FILES:
                companion = getattr(node.handlers, role)
                if companion is not None:
                    jobs.append((companion, role))
        for role in ROOT_FILES:
            path = getattr(self.root, role)
            if path is not None:
                jobs.append((path, role))
        return sorted(jobs, key=lambda job: (str(job[0]), job[1]))


def _skip_directory(name: str) -> bool:
    return name.startswith(".") or name.startswith("_")


def _walk(directory: Path, rel: Tuple[str, ...], found: List[Tuple[Tuple[str, ...], Path]], warnings: List[str]) -> None:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        msg = f"Skipping unreadable directory {directory}: {exc.strerror or exc}"
        logger.warning(msg)
        warnings.append(msg)
        return

    names = {e.name for e in entries if e.is_file()}
    if COMMAND_FILE in names:
        found.append((rel, directory))

    for entry in entries:
        if entry.is_dir(follow_symlinks=False) and not _skip_directory(entry.name):
            _walk(Path(entry.path), rel + (entry.name,), found, warnings)


def _build_node(rel: Tuple[str, ...], directory: Path) -> CommandNode:
    segments: List[str] = []
    dynamic: List[DynamicParam] = []
    for segment in rel:
        if is_dynamic_segment(segment):
            param = parse_dynamic_segment(segment)
            dynamic.append(param)
            segments.append(param.segment)
        else:
            segments.append(segment)

    companions = {
        role: (directory / filename) if (directory / filename).is_file() else None
        for role, filename in COMPANION_FILES.items()
    }
    return CommandNode(
        segments=tuple(segments),
        dynamic_params=tuple(dynamic),
        command_file=directory / COMMAND_FILE,
        handlers=HandlerSet(**companions),
    )


def scan_app_directory(app_dir: Path) -> ScanResult:
    """Scan ``app_dir`` and return the discovered command structure.

    Args:
        app_dir: Root of the command tree.

    Returns:
        ScanResult with commands sorted by ascending depth (ties by path).

    Raises:
        ConfigurationError: If ``app_dir`` does not exist or is not a directory.
    """
    app_dir = Path(app_dir).resolve()
    if not app_dir.is_dir():
        raise ConfigurationError(f"App directory not found: {app_dir}", context={"app_dir": str(app_dir)})

    found: List[Tuple[Tuple[str, ...], Path]] = []
    warnings: List[str] = []
    _walk(app_dir, (), found, warnings)

    nodes = [_build_node(rel, directory) for rel, directory in found]
    nodes.sort(key=lambda n: (n.depth, n.path))

    root = RootHandlers(
        **{
            role: (app_dir / filename) if (app_dir / filename).is_file() else None
            for role, filename in ROOT_FILES.items()
        }
    )
    logger.debug("Scanned %s: %d commands", app_dir, len(nodes))
    return ScanResult(app_dir=app_dir, commands=tuple(nodes), root=root, warnings=tuple(warnings))


__all__ = [
    "COMMAND_FILE",
    "COMPANION_FILES",
    "ROOT_FILES",
    "CommandNode",
    "DynamicParam",
    "HandlerSet",
    "RootHandlers",
    "ScanResult",
    "is_dynamic_segment",
    "parse_dynamic_segment",
    "scan_app_directory",
]
