"""
Execution context values handed to handler modules.

Contexts are frozen. A middleware stage that wants downstream code to see
something different passes a new view with :func:`dataclasses.replace`.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping, Optional, Tuple


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(mapping, MappingProxyType):
        return mapping
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class EnvironmentSnapshot(Mapping[str, Any]):
    """Read-only process environment captured once per run.

    ``validated`` holds the validated env fields when an env schema exists; a
    lookup checks them first and falls back to the raw environment.
    """

    raw: Mapping[str, str] = field(default_factory=dict)
    validated: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "raw", _freeze(self.raw))
        object.__setattr__(self, "validated", _freeze(self.validated))

    def __getitem__(self, key: str) -> Any:
        if key in self.validated:
            return self.validated[key]
        return self.raw[key]

    def __iter__(self) -> Iterator[str]:
        yield from self.validated
        for key in self.raw:
            if key not in self.validated:
                yield key

    def __len__(self) -> int:
        return len(set(self.raw) | set(self.validated))

    def with_validated(self, validated: Mapping[str, Any]) -> "EnvironmentSnapshot":
        return EnvironmentSnapshot(raw=self.raw, validated=validated)


@dataclass(frozen=True)
class BaseContext:
    """What middleware/params/env factories receive."""

    env: EnvironmentSnapshot
    argv: Tuple[str, ...] = ()


def _no_help() -> None:
    return None


@dataclass(frozen=True)
class ExecutionContext:
    command: Tuple[str, ...]
    args: Tuple[str, ...] = ()
    options: Mapping[str, Any] = field(default_factory=dict)
    params: Mapping[str, Any] = field(default_factory=dict)
    env: EnvironmentSnapshot = field(default_factory=EnvironmentSnapshot)
    validated_data: Optional[Mapping[str, Any]] = None
    show_help: Callable[[], None] = field(default=_no_help, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "options", _freeze(self.options))
        object.__setattr__(self, "params", _freeze(self.params))
        if self.validated_data is not None:
            object.__setattr__(self, "validated_data", _freeze(self.validated_data))

    @property
    def data(self) -> Mapping[str, Any]:
        """Validated data, or an empty mapping when the command has no params."""
        return self.validated_data if self.validated_data is not None else MappingProxyType({})

    def with_data(self, data: Mapping[str, Any]) -> "ExecutionContext":
        return replace(self, validated_data=data)


__all__ = ["BaseContext", "EnvironmentSnapshot", "ExecutionContext"]
