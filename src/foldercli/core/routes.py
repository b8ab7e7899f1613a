"""
Route compilation and argv matching.

The route table is built once per build from the scan result and the parsed
module signatures. It is embedded in the generated dispatcher as plain data
(``CommandRoute.to_dict``) and rebuilt with :meth:`RouteTable.from_dicts` at
runtime, so the matching rules below are the only ones in play.

Matching rules for positional tokens:

1. the route consuming the most tokens wins;
2. on a tie, the route with a literal segment at the first position where
   the candidates differ wins over a dynamic one;
3. then the route with fewer segments wins (``greet`` beats
   ``greet/[...rest]`` for ``greet``);
4. the root command matches with length zero and is the fallback.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from foldercli.core.exceptions import ConfigurationError
from foldercli.core.scanner import CommandNode, ScanResult, is_dynamic_segment, parse_dynamic_segment
from foldercli.core.signature import FunctionExport, ModuleSignature, ParseBatch

logger = logging.getLogger(__name__)

# Segment specificity, lower sorts first.
_LITERAL, _DYNAMIC, _VARIADIC = 0, 1, 2


@dataclass(frozen=True)
class ModuleRef:
    """A handler module as the runtime sees it."""

    path: str
    role: str
    kind: str
    is_async: bool = False
    arity: int = 0
    dynamic_fields: Tuple[str, ...] = ()

    @classmethod
    def from_signature(cls, sig: ModuleSignature, app_dir: Path) -> "ModuleRef":
        resolved = sig.resolved
        is_async = isinstance(resolved, FunctionExport) and resolved.is_async
        return cls(
            path=Path(sig.path).relative_to(app_dir).as_posix(),
            role=sig.role,
            kind=sig.kind or "unknown",
            is_async=is_async,
            arity=sig.arity,
            dynamic_fields=tuple(sig.dynamic_fields),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "role": self.role,
            "kind": self.kind,
            "is_async": self.is_async,
            "arity": self.arity,
            "dynamic_fields": list(self.dynamic_fields),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ModuleRef":
        return cls(
            path=data["path"],
            role=data["role"],
            kind=data["kind"],
            is_async=bool(data.get("is_async", False)),
            arity=int(data.get("arity", 0)),
            dynamic_fields=tuple(data.get("dynamic_fields") or ()),
        )


def _segment_kind(segment: str) -> int:
    if not is_dynamic_segment(segment):
        return _LITERAL
    return _VARIADIC if parse_dynamic_segment(segment).optional else _DYNAMIC


@dataclass(frozen=True)
class CommandRoute:
    """Compiled, runtime-facing record of one command."""

    path: str
    segments: Tuple[str, ...]
    command: ModuleRef
    params: Optional[ModuleRef] = None
    help: Optional[ModuleRef] = None
    error: Optional[ModuleRef] = None
    aliases: Tuple[str, ...] = ()
    name: Optional[str] = None
    description: Optional[str] = None
    examples: Tuple[str, ...] = ()
    additional_help: Optional[str] = None

    @property
    def depth(self) -> int:
        return len(self.segments)

    @property
    def is_root(self) -> bool:
        return not self.segments

    @property
    def display_path(self) -> str:
        return " ".join(self.segments)

    @property
    def help_is_static(self) -> bool:
        return self.help is None or not self.help.dynamic_fields

    def patterns(self) -> List[Tuple[str, ...]]:
        """The route's own segments followed by one pattern per alias."""
        out = [self.segments]
        if self.segments:
            for alias in self.aliases:
                out.append(self.segments[:-1] + (alias,))
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "segments": list(self.segments),
            "aliases": list(self.aliases),
            "name": self.name,
            "description": self.description,
            "examples": list(self.examples),
            "additional_help": self.additional_help,
            "command": self.command.to_dict(),
            "params": self.params.to_dict() if self.params else None,
            "help": self.help.to_dict() if self.help else None,
            "error": self.error.to_dict() if self.error else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CommandRoute":
        def ref(key: str) -> Optional[ModuleRef]:
            value = data.get(key)
            return ModuleRef.from_dict(value) if value else None

        command = ref("command")
        if command is None:
            raise ConfigurationError(f"Route {data.get('path')!r} has no command module")
        return cls(
            path=data["path"],
            segments=tuple(data.get("segments") or ()),
            command=command,
            params=ref("params"),
            help=ref("help"),
            error=ref("error"),
            aliases=tuple(data.get("aliases") or ()),
            name=data.get("name"),
            description=data.get("description"),
            examples=tuple(data.get("examples") or ()),
            additional_help=data.get("additional_help"),
        )


@dataclass(frozen=True)
class RouteMatch:
    route: CommandRoute
    params: Mapping[str, Any]
    consumed: int
    remaining: Tuple[str, ...]


def _match_pattern(pattern: Sequence[str], tokens: Sequence[str]) -> Optional[Tuple[int, int, Dict[str, Any]]]:
    """Return ``(matched segments, consumed tokens, bound params)`` or ``None``.

    A variadic segment counts as one matched segment however many tokens it
    collects, and as none when it collects nothing.
    """
    bound: Dict[str, Any] = {}
    for index, segment in enumerate(pattern):
        kind = _segment_kind(segment)
        if kind == _VARIADIC:
            rest = list(tokens[index:])
            bound[parse_dynamic_segment(segment).name] = rest
            return index + (1 if rest else 0), len(tokens), bound
        if index >= len(tokens):
            return None
        if kind == _DYNAMIC:
            bound[parse_dynamic_segment(segment).name] = tokens[index]
        elif segment != tokens[index]:
            return None
    return len(pattern), len(pattern), bound


def _pattern_key(pattern: Sequence[str]) -> Tuple[str, ...]:
    return tuple("*" if k == _DYNAMIC else "**" if k == _VARIADIC else s
                 for s, k in ((s, _segment_kind(s)) for s in pattern))


class RouteTable:
    """Immutable, ordered collection of :class:`CommandRoute`.

    Routes are kept shallow-first (ties by path). Construction validates the
    table and raises :class:`ConfigurationError` on duplicate paths, a
    variadic segment anywhere but last, or two patterns that would always
    match the same tokens.
    """

    def __init__(self, routes: Iterable[CommandRoute]) -> None:
        self._routes: Tuple[CommandRoute, ...] = tuple(sorted(routes, key=lambda r: (r.depth, r.path)))
        self._validate()

    def _validate(self) -> None:
        seen_paths: Dict[str, CommandRoute] = {}
        seen_patterns: Dict[Tuple[str, ...], str] = {}
        for route in self._routes:
            if route.path in seen_paths:
                raise ConfigurationError(f"Duplicate command path: {route.path!r}")
            seen_paths[route.path] = route

            names: List[str] = []
            for index, segment in enumerate(route.segments):
                kind = _segment_kind(segment)
                if kind == _VARIADIC and index != len(route.segments) - 1:
                    raise ConfigurationError(
                        f"Variadic segment {segment!r} must be the last segment of {route.path!r}"
                    )
                if kind != _LITERAL:
                    names.append(parse_dynamic_segment(segment).name)
            if len(names) != len(set(names)):
                raise ConfigurationError(f"Repeated dynamic parameter name in {route.path!r}")

            for pattern in route.patterns():
                key = _pattern_key(pattern)
                other = seen_patterns.get(key)
                if other is not None and other != route.path:
                    raise ConfigurationError(
                        f"Ambiguous routes: {other!r} and {route.path!r} match the same arguments",
                        context={"pattern": "/".join(key)},
                    )
                seen_patterns[key] = route.path

    def __iter__(self):
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    @property
    def routes(self) -> Tuple[CommandRoute, ...]:
        return self._routes

    @property
    def root(self) -> Optional[CommandRoute]:
        for route in self._routes:
            if route.is_root:
                return route
        return None

    def get(self, path: str) -> Optional[CommandRoute]:
        for route in self._routes:
            if route.path == path:
                return route
        return None

    def match(self, tokens: Sequence[str]) -> Optional[RouteMatch]:
        """Match positional ``tokens`` to a route, or return ``None``."""
        tokens = tuple(tokens)
        best: Optional[Tuple[Any, RouteMatch]] = None
        for route in self._routes:
            for pattern in route.patterns():
                found = _match_pattern(pattern, tokens)
                if found is None:
                    continue
                matched, consumed, bound = found
                # Root only matches as the fallback when nothing else does.
                rank = (
                    -matched,
                    tuple(_segment_kind(s) for s in pattern),
                    len(pattern),
                    route.path,
                )
                if best is None or rank < best[0]:
                    best = (rank, RouteMatch(route, bound, consumed, tokens[consumed:]))
        return best[1] if best is not None else None

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [route.to_dict() for route in self._routes]

    @classmethod
    def from_dicts(cls, data: Iterable[Mapping[str, Any]]) -> "RouteTable":
        return cls(CommandRoute.from_dict(item) for item in data)


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AppManifest:
    """Process-wide facts about the generated CLI."""

    cli_name: str
    version: Optional[str] = None
    description: Optional[str] = None
    middleware: Optional[ModuleRef] = None
    global_error: Optional[ModuleRef] = None
    env: Optional[ModuleRef] = None
    version_module: Optional[ModuleRef] = None
    version_metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def verbose_env_var(self) -> str:
        return self.cli_name.upper().replace("-", "_") + "_VERBOSE"

    def to_dict(self) -> Dict[str, Any]:
        def ref(value: Optional[ModuleRef]) -> Optional[Dict[str, Any]]:
            return value.to_dict() if value else None

        return {
            "cli_name": self.cli_name,
            "version": self.version,
            "description": self.description,
            "version_metadata": dict(self.version_metadata),
            "middleware": ref(self.middleware),
            "global_error": ref(self.global_error),
            "env": ref(self.env),
            "version_module": ref(self.version_module),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AppManifest":
        def ref(key: str) -> Optional[ModuleRef]:
            value = data.get(key)
            return ModuleRef.from_dict(value) if value else None

        return cls(
            cli_name=data["cli_name"],
            version=data.get("version"),
            description=data.get("description"),
            middleware=ref("middleware"),
            global_error=ref("global_error"),
            env=ref("env"),
            version_module=ref("version_module"),
            version_metadata=dict(data.get("version_metadata") or {}),
        )


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


def _usable(sig: Optional[ModuleSignature]) -> bool:
    return sig is not None and sig.ok


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value)
    return ()


def _merge_unique(*groups: Iterable[str]) -> Tuple[str, ...]:
    out: List[str] = []
    for group in groups:
        for item in group:
            if item not in out:
                out.append(item)
    return tuple(out)


def _compile_node(node: CommandNode, batch: ParseBatch, app_dir: Path) -> Optional[CommandRoute]:
    command_sig = batch.get(node.command_file)
    if not _usable(command_sig):
        logger.warning("Excluding command %r: command module has no usable export", node.path or "<root>")
        return None

    params_sig = batch.get(node.handlers.params)
    if node.has_params and not _usable(params_sig):
        logger.warning("Excluding command %r: params module has no usable export", node.path or "<root>")
        return None

    help_sig = batch.get(node.handlers.help)
    error_sig = batch.get(node.handlers.error)
    if node.has_help and not _usable(help_sig):
        logger.warning("Ignoring help module of %r", node.path or "<root>")
        help_sig = None
    if node.has_error and not _usable(error_sig):
        logger.warning("Ignoring error module of %r", node.path or "<root>")
        error_sig = None

    meta = dict(command_sig.metadata)
    help_meta = dict(help_sig.metadata) if help_sig else {}

    return CommandRoute(
        path=node.path,
        segments=node.segments,
        command=ModuleRef.from_signature(command_sig, app_dir),
        params=ModuleRef.from_signature(params_sig, app_dir) if params_sig else None,
        help=ModuleRef.from_signature(help_sig, app_dir) if help_sig else None,
        error=ModuleRef.from_signature(error_sig, app_dir) if error_sig else None,
        aliases=_merge_unique(_as_tuple(help_meta.get("aliases")), _as_tuple(meta.get("aliases"))),
        name=help_meta.get("name") or meta.get("name") or (node.segments[-1] if node.segments else None),
        description=(
            help_meta.get("description")
            or meta.get("description")
            or command_sig.description
            or (help_sig.description if help_sig else None)
        ),
        examples=_merge_unique(_as_tuple(help_meta.get("examples")), _as_tuple(meta.get("examples"))),
        additional_help=help_meta.get("additional_help"),
    )


def compile_routes(scan: ScanResult, batch: ParseBatch) -> RouteTable:
    """Merge scanned nodes and their signatures into a :class:`RouteTable`.

    Commands whose ``command`` or ``params`` module failed the shape check are
    left out; their diagnostics are already part of ``batch``.
    """
    routes = []
    for node in scan.commands:
        route = _compile_node(node, batch, scan.app_dir)
        if route is not None:
            routes.append(route)
    table = RouteTable(routes)
    logger.debug("Compiled %d routes", len(table))
    return table


def build_manifest(
    scan: ScanResult,
    batch: ParseBatch,
    *,
    cli_name: str,
    version: Optional[str] = None,
    description: Optional[str] = None,
) -> AppManifest:
    """Collect root-level handlers and version information."""

    def ref(path: Optional[Path]) -> Optional[ModuleRef]:
        sig = batch.get(path)
        return ModuleRef.from_signature(sig, scan.app_dir) if _usable(sig) else None

    version_ref = ref(scan.root.version)
    version_sig = batch.get(scan.root.version) if version_ref else None
    version_meta: Dict[str, Any] = dict(version_sig.metadata) if version_sig else {}
    static_version = version_meta.pop("version", None)

    return AppManifest(
        cli_name=cli_name,
        version=version or static_version,
        description=description or version_meta.get("description"),
        middleware=ref(scan.root.middleware),
        global_error=ref(scan.root.global_error),
        env=ref(scan.root.env),
        version_module=version_ref,
        version_metadata=version_meta,
    )


__all__ = [
    "AppManifest",
    "CommandRoute",
    "ModuleRef",
    "RouteMatch",
    "RouteTable",
    "build_manifest",
    "compile_routes",
]
