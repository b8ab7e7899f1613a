"""
Build configuration loading (YAML + environment overrides + JSON Schema).
"""
from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import jsonschema
import yaml

from foldercli.core.exceptions import ConfigurationError
from foldercli.core.io import read_yaml
from foldercli.data import read_yaml as read_bundled_yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "FOLDERCLI_"
PROJECT_CONFIG_NAMES = ("foldercli.yaml", "foldercli.yml")
_KNOWN_KEYS = frozenset(
    {
        "app_dir",
        "output_dir",
        "cli_name",
        "output_filename",
        "env_types_filename",
        "version",
        "description",
        "workers",
        "verbose",
        "strict",
    }
)

_TEXT_KEYS = _KNOWN_KEYS - {"workers", "verbose", "strict"}


@dataclass(frozen=True)
class BuildConfig:
    """Resolved build settings. Relative paths are anchored at ``project_root``."""

    project_root: Path
    app_dir: Path
    output_dir: Path
    cli_name: str
    output_filename: str
    env_types_filename: str
    version: Optional[str]
    description: Optional[str]
    workers: int
    verbose: bool
    strict: bool

    @property
    def output_path(self) -> Path:
        return self.output_dir / self.output_filename

    @property
    def env_types_path(self) -> Path:
        return self.output_dir / self.env_types_filename

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = str(value) if isinstance(value, Path) else value
        return out


class ConfigLoader:
    """Load, merge, and validate build configuration.

    Configuration sources (highest to lowest priority):
    1. Explicit overrides (command-line flags)
    2. Environment variables: FOLDERCLI_* (e.g. FOLDERCLI_APP_DIR=src/app)
    3. Project config: <project-root>/foldercli.yaml (or .yml)
    4. Bundled defaults: foldercli.data/config/defaults.yaml
    """

    def __init__(self, project_root: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> None:
        self.project_root = Path(project_root or Path.cwd()).resolve()
        self.environ = dict(os.environ if environ is None else environ)

    def find_project_config(self) -> Optional[Path]:
        for name in PROJECT_CONFIG_NAMES:
            candidate = self.project_root / name
            if candidate.exists():
                return candidate
        return None

    def _as_bool(self, v: str) -> Optional[bool]:
        low = v.strip().lower()
        if low in {"true", "false"}:
            return low == "true"
        return None

    def _as_int(self, v: str) -> Optional[int]:
        if re.fullmatch(r"[-+]?\d+", v.strip() or " "):
            return int(v)
        return None

    def _as_float(self, v: str) -> Optional[float]:
        s = v.strip()
        if re.fullmatch(r"[-+]?\d*\.\d+", s) or re.fullmatch(r"[-+]?\d+\.\d*", s):
            return float(s)
        return None

    def _as_json(self, v: str) -> Optional[Any]:
        s = v.strip()
        if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
            try:
                return json.loads(s)
            except ValueError:
                return None
        return None

    def _coerce_type(self, value: str) -> Any:
        for caster in (self._as_bool, self._as_int, self._as_float, self._as_json):
            result = caster(value)
            if result is not None:
                return result
        return value.strip()

    def env_overrides(self) -> Dict[str, Any]:
        """Collect ``FOLDERCLI_<KEY>`` overrides, lower-cased, with typed values."""
        out: Dict[str, Any] = {}
        for key in sorted(self.environ):
            if not key.startswith(ENV_PREFIX):
                continue
            raw = key[len(ENV_PREFIX):].lower()
            if raw not in _KNOWN_KEYS:
                continue
            # Fields that are strings in the schema keep the raw text.
            if raw in _TEXT_KEYS:
                out[raw] = self.environ[key].strip()
            else:
                out[raw] = self._coerce_type(self.environ[key])
        return out

    def validate(self, cfg: Dict[str, Any]) -> None:
        schema = read_bundled_yaml("schemas", "config.schema.yaml")
        validator = jsonschema.Draft202012Validator(schema)
        errors = sorted(validator.iter_errors(cfg), key=lambda e: (list(e.path), e.message))
        if errors:
            lines = []
            for error in errors:
                where = ".".join(str(p) for p in error.path)
                lines.append(f"{where}: {error.message}" if where else error.message)
            raise ConfigurationError(
                "Invalid build configuration:\n" + "\n".join(f"  - {line}" for line in lines),
                context={"errors": lines},
            )

    def load(self, overrides: Optional[Mapping[str, Any]] = None) -> BuildConfig:
        """Merge all sources and return a validated :class:`BuildConfig`.

        Raises:
            ConfigurationError: If the project file is unreadable or the merged
                configuration does not satisfy the bundled schema.
        """
        cfg: Dict[str, Any] = dict(read_bundled_yaml("config", "defaults.yaml"))

        project_file = self.find_project_config()
        if project_file is not None:
            try:
                project_cfg = read_yaml(project_file, default={}, raise_on_error=True)
            except (OSError, yaml.YAMLError) as exc:
                raise ConfigurationError(f"Could not read {project_file}: {exc}") from exc
            if not isinstance(project_cfg, dict):
                raise ConfigurationError(f"{project_file} must contain a YAML mapping")
            logger.debug("Loaded project config from %s", project_file)
            cfg.update(project_cfg)

        cfg.update(self.env_overrides())
        cfg.update({k: v for k, v in (overrides or {}).items() if v is not None})

        self.validate(cfg)

        return BuildConfig(
            project_root=self.project_root,
            app_dir=self._anchor(cfg["app_dir"]),
            output_dir=self._anchor(cfg["output_dir"]),
            cli_name=cfg["cli_name"],
            output_filename=cfg["output_filename"],
            env_types_filename=cfg.get("env_types_filename") or "env_types.py",
            version=cfg.get("version"),
            description=cfg.get("description"),
            workers=int(cfg.get("workers") or 1),
            verbose=bool(cfg.get("verbose")),
            strict=bool(cfg.get("strict")),
        )

    def _anchor(self, value: str) -> Path:
        path = Path(value)
        return path if path.is_absolute() else self.project_root / path


def load_build_config(
    project_root: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> BuildConfig:
    """Convenience wrapper around :class:`ConfigLoader`."""
    return ConfigLoader(project_root, environ=environ).load(overrides)


__all__ = ["BuildConfig", "ConfigLoader", "load_build_config", "ENV_PREFIX"]
