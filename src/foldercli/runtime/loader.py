"""
Lazy, memoised loading of handler modules.

Each module path is imported at most once per run: the first request starts
an :class:`asyncio.Task` and every later request awaits that same task.
"""
from __future__ import annotations

import asyncio
import hashlib
import importlib.util
import inspect
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union

from foldercli.core.exceptions import ModuleLoadError
from foldercli.core.routes import ModuleRef

logger = logging.getLogger(__name__)

LoadFunction = Callable[[Path], Union[ModuleType, Awaitable[ModuleType]]]


def _forget_sibling_modules(before: Set[str], directory: Path) -> None:
    """Drop modules imported from ``directory`` so same-named helpers of
    other commands are imported afresh."""
    for mod_name in set(sys.modules) - before:
        mod_file = getattr(sys.modules[mod_name], "__file__", None)
        if mod_file and Path(mod_file).resolve().parent == directory:
            del sys.modules[mod_name]


def import_module_from_path(path: Path) -> ModuleType:
    """Import the Python file at ``path`` under a unique module name.

    The file's directory is on ``sys.path`` while it executes, so helper
    modules next to a handler can be imported by plain name.
    """
    path = Path(path)
    if not path.is_file():
        raise ModuleLoadError(str(path), f"Module not found: {path}")
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
    name = f"_foldercli_app_{path.stem}_{digest}"
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise ModuleLoadError(str(path), f"Cannot import {path}")
    module = importlib.util.module_from_spec(spec)
    directory = path.resolve().parent
    before = set(sys.modules)
    sys.modules[name] = module
    sys.path.insert(0, str(directory))
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(name, None)
        raise
    finally:
        sys.path.remove(str(directory))
        _forget_sibling_modules(before | {name}, directory)
    return module


class ModuleLoader:
    """Resolve module paths relative to ``app_dir`` and cache the result."""

    def __init__(self, app_dir: Path, load: Optional[LoadFunction] = None) -> None:
        self.app_dir = Path(app_dir)
        self._load = load or import_module_from_path
        self._tasks: Dict[Path, "asyncio.Task[ModuleType]"] = {}
        self.import_count: Dict[Path, int] = {}

    def resolve(self, rel_path: Union[str, Path]) -> Path:
        return (self.app_dir / rel_path).resolve()

    async def _import(self, path: Path) -> ModuleType:
        self.import_count[path] = self.import_count.get(path, 0) + 1
        logger.debug("Importing %s", path)
        try:
            module = self._load(path)
            if inspect.isawaitable(module):
                module = await module
        except ModuleLoadError:
            raise
        except Exception as exc:
            raise ModuleLoadError(str(path), f"Could not load module {path}: {exc}") from exc
        return module

    async def load(self, rel_path: Union[str, Path]) -> ModuleType:
        path = self.resolve(rel_path)
        task = self._tasks.get(path)
        if task is None:
            task = asyncio.ensure_future(self._import(path))
            self._tasks[path] = task
        return await task

    async def export(self, ref: ModuleRef) -> Any:
        """Load ``ref`` and return its role export."""
        module = await self.load(ref.path)
        try:
            return getattr(module, ref.role)
        except AttributeError:
            raise ModuleLoadError(
                str(self.resolve(ref.path)),
                f"{ref.path} has no `{ref.role}` export",
            ) from None


async def materialize(export: Any, ref: ModuleRef, context: Any) -> Any:
    """Call a factory export and await its result; pass other exports through.

    Factories receive ``context`` when they declare at least one positional
    parameter.
    """
    if ref.kind != "function" or not callable(export):
        return export
    value = export(context) if ref.arity >= 1 else export()
    if inspect.isawaitable(value):
        value = await value
    return value


__all__ = ["LoadFunction", "ModuleLoader", "import_module_from_path", "materialize"]
