"""
Dispatcher source generation.

Rendering goes through Jinja2 templates bundled in ``foldercli/data/templates``.
Output depends only on the (sorted) route table and the manifest: no
timestamps, no absolute paths and no unordered iteration, so building the
same tree twice yields byte-identical files.
"""
from __future__ import annotations

import os
import pprint
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from foldercli import __version__
from foldercli.core.routes import AppManifest, RouteTable
from foldercli.core.exceptions import MalformedSchemaError
from foldercli.core.signature import ModuleSignature
from foldercli.data import get_data_path
from foldercli.runtime.validation import schema_kind

DISPATCHER_TEMPLATE = "dispatcher.py.j2"
ENV_TYPES_TEMPLATE = "env_types.py.j2"

_PY_TYPES = {
    "string": "str",
    "number": "float",
    "integer": "int",
    "boolean": "bool",
    "array": "list",
    "object": "dict",
}


def _normalize(value: Any) -> Any:
    """Make ``value`` render the same way on every run."""
    if isinstance(value, Mapping):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted((_normalize(v) for v in value), key=repr)
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def pyrepr(value: Any, indent: int = 0) -> str:
    """Jinja filter: a stable Python literal for ``value``.

    Continuation lines are indented by ``indent`` spaces so nested literals
    line up inside the template.
    """
    text = pprint.pformat(_normalize(value), width=88, sort_dicts=False)
    if indent:
        pad = " " * indent
        text = "\n".join(line if i == 0 else pad + line for i, line in enumerate(text.splitlines()))
    return text


@lru_cache(maxsize=1)
def _environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(get_data_path("templates"))),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
        autoescape=False,
    )
    env.filters["pyrepr"] = pyrepr
    return env


def relative_app_dir(app_dir: Path, output_dir: Path) -> str:
    """``app_dir`` relative to ``output_dir`` in POSIX form."""
    rel = os.path.relpath(Path(app_dir).resolve(), Path(output_dir).resolve())
    return Path(rel).as_posix()


def _doc_line(manifest: AppManifest) -> str:
    text = manifest.cli_name
    if manifest.description:
        text = f"{text}: {manifest.description}"
    text = " ".join(text.split())
    return text.replace("\\", "/").replace('"', "'")


def render_dispatcher(table: RouteTable, manifest: AppManifest, *, app_dir_rel: str = "app") -> str:
    """Render the dispatcher module for ``table``."""
    template = _environment().get_template(DISPATCHER_TEMPLATE)
    return template.render(
        foldercli_version=__version__,
        manifest=manifest.to_dict(),
        title=_doc_line(manifest),
        routes=table.to_dicts(),
        app_dir=app_dir_rel,
    )


def _env_field_type(spec: Any, required: bool) -> str:
    if not isinstance(spec, Mapping):
        return "str"
    py_type = _PY_TYPES.get(str(spec.get("type", "string")), "str")
    always_present = required or "default" in spec
    return py_type if always_present else f"Optional[{py_type}]"


def _env_fields(schema: Mapping[str, Any]) -> List[Dict[str, str]]:
    if schema_kind(schema) == "json":
        required = set(schema.get("required") or ())
        properties = schema.get("properties") or {}
        return [
            {"name": str(name), "type": _env_field_type(spec, name in required)}
            for name, spec in properties.items()
        ]
    return [
        {"name": str(name), "type": _env_field_type(spec, bool(spec.get("required")))}
        for name, spec in schema.items()
    ]


def render_env_declaration(signature: Optional[ModuleSignature], *, type_name: str = "AppEnv") -> Optional[str]:
    """Render a ``TypedDict`` module describing the env schema.

    Returns ``None`` when there is no env module or its schema is not a
    literal that can be read without running it.
    """
    if signature is None or not signature.ok or signature.dynamic_fields:
        return None
    schema = signature.static_value()
    if not isinstance(schema, Mapping) or not schema:
        return None

    try:
        fields = _env_fields(schema)
    except MalformedSchemaError:
        return None
    if not fields:
        return None
    template = _environment().get_template(ENV_TYPES_TEMPLATE)
    return template.render(
        foldercli_version=__version__,
        type_name=type_name,
        fields=fields,
        needs_optional=any(f["type"].startswith("Optional[") for f in fields),
    )


__all__ = ["pyrepr", "relative_app_dir", "render_dispatcher", "render_env_declaration"]
