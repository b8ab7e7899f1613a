"""Static inspection of handler modules.

Modules are parsed with :mod:`ast` and never executed. For each module we
decide which *export shape* its role export has (a function, an object with
fields, a name bound to either, a list of functions, or a plain literal) and
pull out whatever metadata is written as literals. Anything computed is left
for the runtime and listed in ``dynamic_fields``.

The export name of every role is the role itself: ``command.py`` exports
``command``, ``params.py`` exports ``params``, ``global_error.py`` exports
``global_error`` and so on.
"""
from __future__ import annotations

import ast
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from foldercli.core.exceptions import ModuleShapeError

logger = logging.getLogger(__name__)

ROLES = ("command", "params", "help", "error", "middleware", "global_error", "env", "version")

METADATA_FIELDS = ("name", "description", "examples", "aliases")
HELP_FIELDS = ("name", "description", "examples", "aliases", "additional_help")

_ACCEPTED_KINDS: Dict[str, Tuple[str, ...]] = {
    "command": ("function", "object"),
    "params": ("function", "object"),
    "help": ("function", "object"),
    "error": ("function",),
    "global_error": ("function",),
    "middleware": ("function", "list"),
    "env": ("function", "object"),
    "version": ("literal", "object", "function"),
}

_NOT_LITERAL = object()


# ---------------------------------------------------------------------------
# Export shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FunctionExport:
    name: str
    is_async: bool = False
    arity: int = 0
    returns: Any = None
    returns_dynamic: Tuple[str, ...] = ()
    kind: str = field(default="function", init=False)


@dataclass(frozen=True)
class ObjectExport:
    fields: Tuple[str, ...]
    literal: Mapping[str, Any]
    dynamic: Tuple[str, ...] = ()
    constructor: Optional[str] = None
    kind: str = field(default="object", init=False)

    @property
    def has_handler(self) -> bool:
        return "handler" in self.fields


@dataclass(frozen=True)
class ReferenceExport:
    name: str
    target: "ExportShape"
    kind: str = field(default="reference", init=False)


@dataclass(frozen=True)
class ListExport:
    items: Tuple["ExportShape", ...]
    kind: str = field(default="list", init=False)


@dataclass(frozen=True)
class LiteralExport:
    value: Any
    kind: str = field(default="literal", init=False)


ExportShape = Union[FunctionExport, ObjectExport, ReferenceExport, ListExport, LiteralExport]


def resolve_shape(shape: ExportShape) -> ExportShape:
    """Follow references down to the concrete shape."""
    while isinstance(shape, ReferenceExport):
        shape = shape.target
    return shape


# ---------------------------------------------------------------------------
# Signature
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModuleSignature:
    path: Path
    role: str
    shape: Optional[ExportShape]
    description: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    dynamic_fields: Tuple[str, ...] = ()
    diagnostics: Tuple[ModuleShapeError, ...] = ()

    @property
    def ok(self) -> bool:
        return self.shape is not None and not self.diagnostics

    @property
    def resolved(self) -> Optional[ExportShape]:
        return resolve_shape(self.shape) if self.shape is not None else None

    @property
    def kind(self) -> Optional[str]:
        resolved = self.resolved
        return resolved.kind if resolved is not None else None

    @property
    def arity(self) -> int:
        resolved = self.resolved
        if isinstance(resolved, FunctionExport):
            return resolved.arity
        return 0

    def static_value(self) -> Any:
        """The export's value when it is (or returns) a literal, else ``None``."""
        resolved = self.resolved
        if isinstance(resolved, LiteralExport):
            return resolved.value
        if isinstance(resolved, ObjectExport):
            return dict(resolved.literal)
        if isinstance(resolved, FunctionExport):
            return resolved.returns
        return None


# ---------------------------------------------------------------------------
# Literal helpers
# ---------------------------------------------------------------------------


def _literal(node: ast.AST) -> Any:
    try:
        return ast.literal_eval(node)
    except (ValueError, TypeError, SyntaxError, MemoryError, RecursionError):
        return _NOT_LITERAL


def _partial_literal(node: ast.AST, prefix: str = "") -> Tuple[Any, List[str]]:
    """Evaluate ``node`` as far as it is literal.

    Dict literals are evaluated key by key so one computed entry does not hide
    the literal ones. Returns ``(value, dynamic_paths)``; ``value`` is
    ``_NOT_LITERAL`` when nothing could be evaluated.
    """
    if isinstance(node, ast.Dict):
        out: Dict[str, Any] = {}
        dynamic: List[str] = []
        for key_node, value_node in zip(node.keys, node.values):
            if key_node is None:
                dynamic.append(f"{prefix}**")
                continue
            key = _literal(key_node)
            if not isinstance(key, str):
                dynamic.append(f"{prefix}<computed key>")
                continue
            value, nested = _partial_literal(value_node, f"{prefix}{key}.")
            dynamic.extend(nested)
            if value is _NOT_LITERAL:
                dynamic.append(f"{prefix}{key}")
            else:
                out[key] = value
        return out, dynamic
    return _literal(node), []


def _arity(args: ast.arguments) -> int:
    count = len(args.posonlyargs) + len(args.args)
    if args.vararg is not None:
        count += 1
    return count


def _top_level_return(body: Sequence[ast.stmt]) -> Tuple[Any, Tuple[str, ...]]:
    for stmt in body:
        if isinstance(stmt, ast.Return) and stmt.value is not None:
            value, dynamic = _partial_literal(stmt.value)
            if value is _NOT_LITERAL:
                return None, ()
            return value, tuple(dynamic)
    return None, ()


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class _Imported:
    """Marker for names bound by import statements."""

    def __init__(self, module: str) -> None:
        self.module = module


def _collect_bindings(tree: ast.Module) -> Dict[str, Any]:
    bindings: Dict[str, Any] = {}
    for stmt in tree.body:
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            bindings[stmt.name] = stmt
        elif isinstance(stmt, ast.Assign):
            for target in stmt.targets:
                if isinstance(target, ast.Name):
                    bindings[target.id] = stmt.value
        elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name) and stmt.value is not None:
            bindings[stmt.target.id] = stmt.value
        elif isinstance(stmt, (ast.Import, ast.ImportFrom)):
            module = getattr(stmt, "module", None) or ""
            for alias in stmt.names:
                bound = alias.asname or alias.name.split(".")[0]
                bindings[bound] = _Imported(module or alias.name)
    return bindings


class _ShapeResolver:
    def __init__(self, bindings: Dict[str, Any]) -> None:
        self.bindings = bindings
        self.problem: Optional[str] = None

    def shape_of(self, node: Any, seen: Tuple[str, ...] = ()) -> Optional[ExportShape]:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            returns, returns_dynamic = _top_level_return(node.body)
            return FunctionExport(
                name=node.name,
                is_async=isinstance(node, ast.AsyncFunctionDef),
                arity=_arity(node.args),
                returns=returns,
                returns_dynamic=returns_dynamic,
            )
        if isinstance(node, ast.Lambda):
            returns, returns_dynamic = _partial_literal(node.body)
            return FunctionExport(
                name="<lambda>",
                arity=_arity(node.args),
                returns=None if returns is _NOT_LITERAL else returns,
                returns_dynamic=tuple(returns_dynamic),
            )
        if isinstance(node, ast.Dict):
            value, dynamic = _partial_literal(node)
            literal = value if isinstance(value, dict) else {}
            names = [k for k in (_literal(k) for k in node.keys if k is not None) if isinstance(k, str)]
            return ObjectExport(fields=tuple(names), literal=literal, dynamic=tuple(dynamic))
        if isinstance(node, ast.Call):
            literal: Dict[str, Any] = {}
            dynamic: List[str] = []
            names: List[str] = []
            for kw in node.keywords:
                if kw.arg is None:
                    dynamic.append("**")
                    continue
                names.append(kw.arg)
                value, nested = _partial_literal(kw.value, f"{kw.arg}.")
                dynamic.extend(nested)
                if value is _NOT_LITERAL:
                    dynamic.append(kw.arg)
                else:
                    literal[kw.arg] = value
            return ObjectExport(
                fields=tuple(names),
                literal=literal,
                dynamic=tuple(dynamic),
                constructor=ast.unparse(node.func),
            )
        if isinstance(node, ast.Name):
            if node.id in seen:
                self.problem = f"circular reference through {node.id!r}"
                return None
            target = self.bindings.get(node.id)
            if target is None:
                self.problem = f"{node.id!r} is not bound at module level"
                return None
            if isinstance(target, _Imported):
                self.problem = f"{node.id!r} is imported from {target.module!r} and cannot be inspected statically"
                return None
            resolved = self.shape_of(target, seen + (node.id,))
            return ReferenceExport(name=node.id, target=resolved) if resolved is not None else None
        if isinstance(node, (ast.List, ast.Tuple)):
            items = []
            for elt in node.elts:
                item = self.shape_of(elt, seen)
                if item is None:
                    return None
                items.append(item)
            return ListExport(items=tuple(items))
        if isinstance(node, ast.Constant) and isinstance(node.value, str):
            return LiteralExport(value=node.value)
        if isinstance(node, ast.ClassDef):
            self.problem = f"class {node.name!r} is not a supported export"
            return None
        return None


def _description(tree: ast.Module, bindings: Dict[str, Any]) -> Optional[str]:
    summary = bindings.get("SUMMARY")
    if isinstance(summary, ast.Constant) and isinstance(summary.value, str) and summary.value.strip():
        return summary.value.strip()
    doc = ast.get_docstring(tree)
    if not doc:
        return None
    first = doc.strip().split("\n\n", 1)[0]
    return " ".join(line.strip() for line in first.splitlines()).strip() or None


def _check_role(role: str, shape: Optional[ExportShape], problem: Optional[str]) -> Optional[str]:
    """Return a diagnostic message when ``shape`` is not valid for ``role``."""
    if shape is None:
        if problem:
            return f"`{role}` export is not recognizable: {problem}"
        return f"no `{role}` export found"

    resolved = resolve_shape(shape)
    accepted = _ACCEPTED_KINDS[role]
    if resolved.kind not in accepted:
        return f"`{role}` must be one of: {', '.join(accepted)} (found {resolved.kind})"
    if role == "command" and isinstance(resolved, ObjectExport) and not resolved.has_handler:
        return "`command` object has no `handler` field"
    if isinstance(resolved, ListExport):
        for item in resolved.items:
            if resolve_shape(item).kind != "function":
                return f"`{role}` list may only contain functions"
    return None


def _pick(source: Any, keys: Iterable[str]) -> Dict[str, Any]:
    if not isinstance(source, Mapping):
        return {}
    return {k: source[k] for k in keys if k in source}


def _returned(resolved: ExportShape) -> Tuple[Any, List[str]]:
    """Literal value of an object/function export plus its non-literal paths."""
    if isinstance(resolved, ObjectExport):
        return dict(resolved.literal), list(resolved.dynamic)
    if isinstance(resolved, FunctionExport):
        if resolved.returns is None:
            return None, ["return"]
        return resolved.returns, list(resolved.returns_dynamic)
    if isinstance(resolved, LiteralExport):
        return resolved.value, []
    return None, []


def _extract_metadata(role: str, shape: ExportShape, bindings: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    resolved = resolve_shape(shape)
    metadata: Dict[str, Any] = {}
    dynamic: List[str] = []

    if role == "command":
        module_meta = bindings.get("metadata")
        if isinstance(module_meta, ast.Dict):
            value, nested = _partial_literal(module_meta, "metadata.")
            metadata.update(_pick(value, METADATA_FIELDS))
            dynamic.extend(nested)
        if isinstance(resolved, ObjectExport):
            metadata.update(_pick(resolved.literal.get("metadata"), METADATA_FIELDS))
            dynamic.extend(d for d in resolved.dynamic if d.split(".")[0] == "metadata")
    elif role == "help":
        value, nested = _returned(resolved)
        metadata = _pick(value, HELP_FIELDS)
        dynamic.extend(d for d in nested if d == "return" or d.split(".")[0] in HELP_FIELDS)
    elif role == "env":
        _, nested = _returned(resolved)
        dynamic.extend(nested)
    elif role == "version":
        value, nested = _returned(resolved)
        if isinstance(value, str):
            metadata["version"] = value
        elif isinstance(value, Mapping):
            if isinstance(value.get("version"), str):
                metadata["version"] = value["version"]
            if isinstance(value.get("metadata"), Mapping):
                metadata.update({k: v for k, v in value["metadata"].items() if k != "version"})
        dynamic.extend(nested)
    return metadata, dynamic


def parse_source(source: str, path: Path, role: str) -> ModuleSignature:
    """Parse ``source`` as the module at ``path`` playing ``role``."""
    if role not in _ACCEPTED_KINDS:
        raise ValueError(f"Unknown module role: {role}")

    try:
        tree = ast.parse(source, filename=str(path))
    except SyntaxError as exc:
        msg = f"syntax error at line {exc.lineno}: {exc.msg}"
        return ModuleSignature(
            path=path,
            role=role,
            shape=None,
            diagnostics=(ModuleShapeError(f"{path}: {msg}", path=str(path), role=role),),
        )

    bindings = _collect_bindings(tree)
    resolver = _ShapeResolver(bindings)
    export = bindings.get(role)
    shape: Optional[ExportShape] = None
    if isinstance(export, _Imported):
        resolver.problem = f"{role!r} is imported from {export.module!r} and cannot be inspected statically"
    elif export is not None:
        shape = resolver.shape_of(export, (role,))

    problem = _check_role(role, shape, resolver.problem)
    if shape is None or problem is not None:
        return ModuleSignature(
            path=path,
            role=role,
            shape=None,
            description=_description(tree, bindings),
            diagnostics=(ModuleShapeError(f"{path}: {problem}", path=str(path), role=role),),
        )

    metadata, dynamic = _extract_metadata(role, shape, bindings)
    return ModuleSignature(
        path=path,
        role=role,
        shape=shape,
        description=_description(tree, bindings),
        metadata=metadata,
        dynamic_fields=tuple(sorted(set(dynamic))),
    )


def parse_module(path: Path, role: str) -> ModuleSignature:
    """Read and statically parse one module file."""
    path = Path(path)
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        return ModuleSignature(
            path=path,
            role=role,
            shape=None,
            diagnostics=(ModuleShapeError(f"{path}: could not read module: {exc}", path=str(path), role=role),),
        )
    return parse_source(source, path, role)


@dataclass(frozen=True)
class ParseBatch:
    signatures: Mapping[Path, ModuleSignature]
    diagnostics: Tuple[ModuleShapeError, ...]

    def get(self, path: Optional[Path]) -> Optional[ModuleSignature]:
        if path is None:
            return None
        return self.signatures.get(Path(path))


def parse_modules(jobs: Sequence[Tuple[Path, str]], *, workers: int = 4) -> ParseBatch:
    """Parse independent modules in parallel.

    Completion order is irrelevant: results are keyed by path and diagnostics
    are sorted by ``(path, message)`` before being returned.
    """
    signatures: Dict[Path, ModuleSignature] = {}
    if workers <= 1 or len(jobs) <= 1:
        for path, role in jobs:
            signatures[Path(path)] = parse_module(path, role)
    else:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="foldercli-parse") as pool:
            futures = {pool.submit(parse_module, path, role): Path(path) for path, role in jobs}
            for future in as_completed(futures):
                signatures[futures[future]] = future.result()

    diagnostics = sorted(
        (d for sig in signatures.values() for d in sig.diagnostics),
        key=lambda d: (d.path, str(d)),
    )
    for diag in diagnostics:
        logger.warning("%s", diag)
    return ParseBatch(signatures=signatures, diagnostics=tuple(diagnostics))


__all__ = [
    "ROLES",
    "ExportShape",
    "FunctionExport",
    "ListExport",
    "LiteralExport",
    "ModuleSignature",
    "ObjectExport",
    "ParseBatch",
    "ReferenceExport",
    "parse_module",
    "parse_modules",
    "parse_source",
    "resolve_shape",
]
