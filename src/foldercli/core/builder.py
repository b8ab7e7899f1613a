"""
Build pipeline: scan -> parse -> compile -> render -> write.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from foldercli.core.config import BuildConfig
from foldercli.core.exceptions import ConfigurationError, ModuleShapeError
from foldercli.core.generator import relative_app_dir, render_dispatcher, render_env_declaration
from foldercli.core.io import write_text_atomic
from foldercli.core.routes import AppManifest, RouteTable, build_manifest, compile_routes
from foldercli.core.scanner import ScanResult, scan_app_directory
from foldercli.core.signature import ParseBatch, parse_modules

logger = logging.getLogger(__name__)

DISPATCHER_MODE = 0o755
ENV_TYPES_MODE = 0o644


@dataclass(frozen=True)
class CompiledApp:
    scan: ScanResult
    batch: ParseBatch
    table: RouteTable
    manifest: AppManifest

    @property
    def diagnostics(self) -> Tuple[ModuleShapeError, ...]:
        return self.batch.diagnostics


@dataclass(frozen=True)
class BuildResult:
    output_path: Path
    env_types_path: Optional[Path]
    compiled: CompiledApp
    written: bool
    elapsed: float

    @property
    def diagnostics(self) -> Tuple[ModuleShapeError, ...]:
        return self.compiled.diagnostics

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output": str(self.output_path),
            "env_types": str(self.env_types_path) if self.env_types_path else None,
            "written": self.written,
            "commands": [route.path for route in self.compiled.table],
            "diagnostics": [str(d) for d in self.diagnostics],
            "warnings": list(self.compiled.scan.warnings),
            "elapsed_seconds": round(self.elapsed, 4),
        }


def compile_app(
    app_dir: Path,
    *,
    cli_name: str,
    version: Optional[str] = None,
    description: Optional[str] = None,
    workers: int = 4,
) -> CompiledApp:
    """Scan ``app_dir`` and compile its route table and manifest."""
    scan = scan_app_directory(app_dir)
    batch = parse_modules(scan.module_paths(), workers=workers)
    table = compile_routes(scan, batch)
    manifest = build_manifest(scan, batch, cli_name=cli_name, version=version, description=description)
    return CompiledApp(scan=scan, batch=batch, table=table, manifest=manifest)


def _write_if_changed(path: Path, content: str, mode: int) -> bool:
    if path.is_file() and path.read_text(encoding="utf-8") == content:
        logger.debug("%s is up to date", path)
        return False
    write_text_atomic(path, content, mode=mode)
    logger.info("Wrote %s", path)
    return True


def build_cli(config: BuildConfig) -> BuildResult:
    """Generate the dispatcher (and env declaration) described by ``config``.

    Raises:
        ConfigurationError: If the app directory is missing, the route table
            is malformed, or ``config.strict`` is set and any module produced a
            diagnostic.
    """
    started = time.perf_counter()
    compiled = compile_app(
        config.app_dir,
        cli_name=config.cli_name,
        version=config.version,
        description=config.description,
        workers=config.workers,
    )
    if config.strict and compiled.diagnostics:
        raise ConfigurationError(
            f"{len(compiled.diagnostics)} module(s) have no usable export",
            context={"diagnostics": [str(d) for d in compiled.diagnostics]},
        )
    if not len(compiled.table):
        logger.warning("No commands found under %s", compiled.scan.app_dir)

    source = render_dispatcher(
        compiled.table,
        compiled.manifest,
        app_dir_rel=relative_app_dir(compiled.scan.app_dir, config.output_dir),
    )
    written = _write_if_changed(config.output_path, source, DISPATCHER_MODE)

    env_path: Optional[Path] = None
    env_source = render_env_declaration(compiled.batch.get(compiled.scan.root.env))
    if env_source is not None:
        env_path = config.env_types_path
        written = _write_if_changed(env_path, env_source, ENV_TYPES_MODE) or written

    return BuildResult(
        output_path=config.output_path,
        env_types_path=env_path,
        compiled=compiled,
        written=written,
        elapsed=time.perf_counter() - started,
    )


__all__ = ["BuildResult", "CompiledApp", "build_cli", "compile_app"]
