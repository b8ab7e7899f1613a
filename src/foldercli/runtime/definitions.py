"""
Typed definitions handler modules may export.

Handler modules can export plain dicts as well; these classes are what the
runtime normalises them into.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Tuple

from foldercli.core.exceptions import MalformedSchemaError
from foldercli.runtime.validation import ParamMapping


@dataclass(frozen=True)
class CommandDefinition:
    """``command = CommandDefinition(handler=run, metadata={...})``"""

    handler: Callable[..., Any]
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_export(cls, value: Any) -> "CommandDefinition":
        if isinstance(value, CommandDefinition):
            return value
        if callable(value):
            return cls(handler=value)
        if isinstance(value, Mapping):
            handler = value.get("handler")
            metadata = value.get("metadata") or {}
        else:
            handler = getattr(value, "handler", None)
            metadata = getattr(value, "metadata", None) or {}
        if not callable(handler):
            raise TypeError(f"command export has no callable handler: {value!r}")
        return cls(handler=handler, metadata=dict(metadata))


@dataclass(frozen=True)
class ParamsDefinition:
    """Mappings, a schema, or both."""

    mappings: Tuple[ParamMapping, ...] = ()
    schema: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "mappings", tuple(ParamMapping.from_value(m) for m in self.mappings or ()))
        fields = [m.field for m in self.mappings]
        duplicates = sorted({f for f in fields if fields.count(f) > 1})
        if duplicates:
            raise MalformedSchemaError(f"Duplicate mapped fields: {', '.join(duplicates)}")

    @classmethod
    def from_export(cls, value: Any) -> "ParamsDefinition":
        if isinstance(value, ParamsDefinition):
            return value
        if isinstance(value, (list, tuple)):
            return cls(mappings=tuple(value))
        if isinstance(value, Mapping):
            unknown = sorted(set(value) - {"mappings", "schema"})
            if unknown:
                raise MalformedSchemaError(
                    f"Unknown keys in params definition: {', '.join(map(str, unknown))}",
                    context={"keys": unknown},
                )
            return cls(mappings=tuple(value.get("mappings") or ()), schema=value.get("schema"))
        raise MalformedSchemaError(f"Unsupported params definition: {type(value).__name__}")


@dataclass(frozen=True)
class HelpDefinition:
    name: Optional[str] = None
    description: Optional[str] = None
    examples: Tuple[str, ...] = ()
    aliases: Tuple[str, ...] = ()
    additional_help: Optional[str] = None

    @classmethod
    def from_export(cls, value: Any) -> "HelpDefinition":
        if isinstance(value, HelpDefinition):
            return value
        if not isinstance(value, Mapping):
            raise TypeError(f"help export must be a mapping or HelpDefinition, got {type(value).__name__}")
        return cls(
            name=value.get("name"),
            description=value.get("description"),
            examples=tuple(value.get("examples") or ()),
            aliases=tuple(value.get("aliases") or ()),
            additional_help=value.get("additional_help"),
        )


__all__ = ["CommandDefinition", "HelpDefinition", "ParamsDefinition"]
