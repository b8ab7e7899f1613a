"""
Parameter validation engine.

A params definition takes one of three shapes:

(a) mappings only
    Each mapping pulls one field from a named option or a positional index,
    coerces it to its declared type and the record is checked against the
    minimal JSON Schema the mappings imply.
(b) schema only
    Positionals are exposed as ``arg0``, ``arg1``, ... merged with the named
    options (options win) and validated by the schema directly.
(c) mappings + schema
    Mappings build the record (coercing when the mapping or the schema
    property declares a type) and the schema validates it.

Schemas may be JSON Schema documents (checked with ``jsonschema``), field
schema mappings such as ``{"name": {"type": "string", "required": True}}``,
or any object with a ``validate(data) -> ValidationResult`` method.

Validation failures are returned as values. Only a schema that cannot be
interpreted raises :class:`MalformedSchemaError`.
"""
from __future__ import annotations

import copy
import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import jsonschema
from jsonschema.exceptions import SchemaError

from foldercli.core.exceptions import MalformedSchemaError

FIELD_TYPES = ("string", "number", "integer", "boolean", "array", "object")

_FIELD_SCHEMA_KEYS = frozenset(
    {
        "type",
        "required",
        "default",
        "description",
        "min_length",
        "max_length",
        "min",
        "max",
        "min_value",
        "max_value",
        "enum",
        "pattern",
        "error_message",
    }
)

_TRUE = {"true", "1", "yes", "on", "y"}
_FALSE = {"false", "0", "no", "off", "n"}
_INT_RE = re.compile(r"[-+]?\d+")
_FLOAT_RE = re.compile(r"[-+]?(\d+\.\d*|\.\d+|\d+)([eE][-+]?\d+)?")


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldIssue:
    """One failing field: dotted ``field`` path plus a human message."""

    field: str
    message: str

    @property
    def path(self) -> Tuple[str, ...]:
        return tuple(self.field.split(".")) if self.field else ()

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class ValidationResult:
    """Either ``success(data)`` or ``failure(issues)``."""

    success: bool
    data: Mapping[str, Any] = field(default_factory=dict)
    issues: Tuple[FieldIssue, ...] = ()

    @classmethod
    def ok(cls, data: Mapping[str, Any]) -> "ValidationResult":
        return cls(success=True, data=dict(data))

    @classmethod
    def failure(cls, issues: Iterable[FieldIssue], data: Optional[Mapping[str, Any]] = None) -> "ValidationResult":
        issues = tuple(issues)
        if not issues:
            raise ValueError("failure() needs at least one issue")
        return cls(success=False, data=dict(data or {}), issues=issues)

    def __bool__(self) -> bool:
        return self.success


@dataclass(frozen=True)
class ParamMapping:
    """Where one field comes from and how it is coerced.

    ``option`` wins over ``arg_index``; ``default`` is used only when
    neither supplied a value.
    """

    field: str
    arg_index: Optional[int] = None
    option: Optional[str] = None
    default: Any = MISSING
    type: Optional[str] = None
    required: bool = False
    description: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.field, str) or not self.field:
            raise MalformedSchemaError(f"Parameter mapping needs a field name, got {self.field!r}")
        if self.type is not None and self.type not in FIELD_TYPES:
            raise MalformedSchemaError(
                f"Unknown type {self.type!r} for field {self.field!r}",
                context={"field": self.field, "allowed": list(FIELD_TYPES)},
            )
        if self.arg_index is not None and (
            isinstance(self.arg_index, bool) or not isinstance(self.arg_index, int) or self.arg_index < 0
        ):
            raise MalformedSchemaError(f"arg_index of {self.field!r} must be a non-negative integer")
        if self.option is not None and (not isinstance(self.option, str) or not self.option):
            raise MalformedSchemaError(f"option of {self.field!r} must be a non-empty string")

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    @classmethod
    def from_value(cls, value: Any) -> "ParamMapping":
        if isinstance(value, ParamMapping):
            return value
        if not isinstance(value, Mapping):
            raise MalformedSchemaError(f"Parameter mapping must be a mapping, got {type(value).__name__}")
        allowed = {"field", "arg_index", "option", "default", "type", "required", "description"}
        unknown = sorted(set(value) - allowed)
        if unknown:
            raise MalformedSchemaError(
                f"Unknown keys in mapping for {value.get('field')!r}: {', '.join(unknown)}",
                context={"keys": unknown},
            )
        return cls(
            field=value.get("field"),
            arg_index=value.get("arg_index"),
            option=value.get("option"),
            default=value["default"] if "default" in value else MISSING,
            type=value.get("type"),
            required=bool(value.get("required", False)),
            description=value.get("description"),
        )

    def extract(self, args: Sequence[str], options: Mapping[str, Any]) -> Any:
        """The raw value for this field, or ``MISSING``."""
        if self.option is not None and self.option in options:
            return options[self.option]
        if self.arg_index is not None and self.arg_index < len(args):
            return args[self.arg_index]
        if self.has_default:
            return copy.deepcopy(self.default)
        return MISSING


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


class CoercionError(ValueError):
    pass


def _to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        raise CoercionError("expects a value")
    if isinstance(value, (int, float)):
        return str(value)
    raise CoercionError("must be a string")


def _to_number(value: Any) -> Any:
    if isinstance(value, bool):
        raise CoercionError("must be a number")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if _INT_RE.fullmatch(text):
            return int(text)
        if _FLOAT_RE.fullmatch(text):
            return float(text)
    raise CoercionError("must be a number")


def _to_integer(value: Any) -> int:
    number = _to_number(value)
    if isinstance(number, float):
        if not number.is_integer():
            raise CoercionError("must be an integer")
        return int(number)
    return number


def _to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        low = value.strip().lower()
        if low in _TRUE:
            return True
        if low in _FALSE:
            return False
    raise CoercionError("must be a boolean")


def _to_array(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except ValueError as exc:
                raise CoercionError("must be an array") from exc
            if isinstance(parsed, list):
                return parsed
            raise CoercionError("must be an array")
        return [part.strip() for part in text.split(",") if part.strip()]
    raise CoercionError("must be an array")


def _to_object(value: Any) -> dict:
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError as exc:
            raise CoercionError("must be an object") from exc
        if isinstance(parsed, dict):
            return parsed
    raise CoercionError("must be an object")


_COERCERS: Dict[str, Callable[[Any], Any]] = {
    "string": _to_string,
    "number": _to_number,
    "integer": _to_integer,
    "boolean": _to_boolean,
    "array": _to_array,
    "object": _to_object,
}


def coerce_value(value: Any, type_name: str) -> Any:
    """Coerce ``value`` to ``type_name``; raise :class:`CoercionError` on mismatch."""
    try:
        coercer = _COERCERS[type_name]
    except KeyError:
        raise MalformedSchemaError(f"Unknown type {type_name!r}") from None
    return coercer(value)


# ---------------------------------------------------------------------------
# Schema kinds
# ---------------------------------------------------------------------------


def schema_kind(schema: Any) -> str:
    """Classify ``schema`` as ``"json"``, ``"fields"`` or ``"custom"``."""
    if not isinstance(schema, Mapping):
        if callable(getattr(schema, "validate", None)):
            return "custom"
        raise MalformedSchemaError(f"Unsupported schema object: {type(schema).__name__}")
    if "$schema" in schema or schema.get("type") == "object" or isinstance(schema.get("properties"), Mapping):
        return "json"
    for name, spec in schema.items():
        if not isinstance(spec, Mapping):
            raise MalformedSchemaError(
                f"Field schema for {name!r} must be a mapping, got {type(spec).__name__}",
                context={"field": name},
            )
    return "fields"


def declared_type(schema: Any, name: str) -> Optional[str]:
    """The type a schema declares for field ``name``, if any."""
    if schema is None or not isinstance(schema, Mapping):
        return None
    kind = schema_kind(schema)
    if kind == "json":
        prop = (schema.get("properties") or {}).get(name)
    else:
        prop = schema.get(name)
    if isinstance(prop, Mapping) and isinstance(prop.get("type"), str) and prop["type"] in FIELD_TYPES:
        return prop["type"]
    return None


def schema_fields(schema: Any) -> List[str]:
    if schema is None or not isinstance(schema, Mapping):
        return []
    if schema_kind(schema) == "json":
        return list((schema.get("properties") or {}).keys())
    return list(schema.keys())


def _order_issues(issues: Iterable[FieldIssue], order: Sequence[str]) -> Tuple[FieldIssue, ...]:
    rank = {name: i for i, name in enumerate(order)}
    unique: List[FieldIssue] = []
    for issue in issues:
        if issue not in unique:
            unique.append(issue)
    return tuple(sorted(unique, key=lambda i: rank.get(i.path[0] if i.path else "", len(rank))))


def _validate_json(schema: Mapping[str, Any], data: Dict[str, Any]) -> List[FieldIssue]:
    try:
        validator_cls = jsonschema.validators.validator_for(schema, default=jsonschema.Draft202012Validator)
        validator_cls.check_schema(schema)
    except SchemaError as exc:
        raise MalformedSchemaError(f"Invalid JSON Schema: {exc.message}") from exc

    for name, prop in (schema.get("properties") or {}).items():
        if name not in data and isinstance(prop, Mapping) and "default" in prop:
            data[name] = copy.deepcopy(prop["default"])

    issues: List[FieldIssue] = []
    errors = sorted(validator_cls(schema).iter_errors(data), key=lambda e: (list(map(str, e.absolute_path)), e.message))
    for error in errors:
        prefix = ".".join(str(p) for p in error.absolute_path)
        if error.validator == "required" and isinstance(error.instance, Mapping):
            for name in error.validator_value:
                if name not in error.instance:
                    where = f"{prefix}.{name}" if prefix else name
                    issues.append(FieldIssue(where, f"{name} is required"))
            continue
        issues.append(FieldIssue(prefix or "(root)", error.message))
    return issues


def _check_field(name: str, spec: Mapping[str, Any], value: Any) -> Tuple[Any, Optional[str]]:
    type_name = spec.get("type")
    if type_name is not None:
        try:
            value = coerce_value(value, type_name)
        except CoercionError as exc:
            return value, f"{name} {exc}"

    min_len = spec.get("min_length")
    max_len = spec.get("max_length")
    if isinstance(value, (str, list)):
        unit = "characters" if isinstance(value, str) else "items"
        if min_len is not None and len(value) < min_len:
            return value, f"{name} must be at least {min_len} {unit}"
        if max_len is not None and len(value) > max_len:
            return value, f"{name} must be at most {max_len} {unit}"

    low = spec.get("min", spec.get("min_value"))
    high = spec.get("max", spec.get("max_value"))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if low is not None and value < low:
            return value, f"{name} must be at least {low}"
        if high is not None and value > high:
            return value, f"{name} must be at most {high}"

    enum = spec.get("enum")
    if enum is not None and value not in enum:
        return value, f"{name} must be one of: {', '.join(str(e) for e in enum)}"

    pattern = spec.get("pattern")
    if pattern is not None and isinstance(value, str) and re.fullmatch(pattern, value) is None:
        return value, f"{name} does not match pattern {pattern}"
    return value, None


def _validate_fields(schema: Mapping[str, Any], data: Dict[str, Any]) -> List[FieldIssue]:
    issues: List[FieldIssue] = []
    for name, spec in schema.items():
        unknown = sorted(set(spec) - _FIELD_SCHEMA_KEYS)
        if unknown:
            raise MalformedSchemaError(
                f"Unknown keys in field schema {name!r}: {', '.join(unknown)}",
                context={"field": name, "keys": unknown},
            )
        if spec.get("type") is not None and spec["type"] not in FIELD_TYPES:
            raise MalformedSchemaError(f"Unknown type {spec['type']!r} for field {name!r}")

        value = data.get(name, MISSING)
        if value is MISSING or value is None:
            if "default" in spec:
                data[name] = copy.deepcopy(spec["default"])
            elif spec.get("required"):
                issues.append(FieldIssue(name, f"{name} is required"))
            continue

        coerced, problem = _check_field(name, spec, value)
        if problem is not None:
            issues.append(FieldIssue(name, spec.get("error_message") or problem))
        else:
            data[name] = coerced
    return issues


def validate_data(schema: Any, data: Mapping[str, Any], *, order: Sequence[str] = ()) -> ValidationResult:
    """Validate a flat record against any supported schema kind."""
    record = dict(data)
    kind = schema_kind(schema)
    if kind == "custom":
        result = schema.validate(record)
        if not isinstance(result, ValidationResult):
            raise MalformedSchemaError(
                f"{type(schema).__name__}.validate() must return a ValidationResult, got {type(result).__name__}"
            )
        return result

    issues = _validate_json(schema, record) if kind == "json" else _validate_fields(schema, record)
    if issues:
        return ValidationResult.failure(_order_issues(issues, list(order) or schema_fields(schema)), record)
    return ValidationResult.ok(record)


# ---------------------------------------------------------------------------
# Params
# ---------------------------------------------------------------------------


def _implied_schema(mappings: Sequence[ParamMapping]) -> Dict[str, Any]:
    properties: Dict[str, Any] = {}
    for mapping in mappings:
        properties[mapping.field] = {"type": mapping.type} if mapping.type else {}
    return {
        "type": "object",
        "properties": properties,
        "required": [m.field for m in mappings if m.required],
    }


def extract_mapped(
    mappings: Sequence[ParamMapping],
    args: Sequence[str],
    options: Mapping[str, Any],
    *,
    schema: Any = None,
    enforce_required: bool = True,
) -> Tuple[Dict[str, Any], List[FieldIssue]]:
    """Build the flat record described by ``mappings``.

    Returns ``(record, issues)``. Missing fields are left out of the record;
    they are reported here only when ``enforce_required`` is set.
    """
    record: Dict[str, Any] = {}
    issues: List[FieldIssue] = []
    for mapping in mappings:
        value = mapping.extract(args, options)
        if value is MISSING:
            if enforce_required and mapping.required:
                issues.append(FieldIssue(mapping.field, f"{mapping.field} is required"))
            continue
        type_name = mapping.type or declared_type(schema, mapping.field)
        if type_name is not None:
            try:
                value = coerce_value(value, type_name)
            except CoercionError as exc:
                issues.append(FieldIssue(mapping.field, f"{mapping.field} {exc}"))
                continue
        record[mapping.field] = value
    return record, issues


def validate_params(definition: Any, args: Sequence[str], options: Mapping[str, Any]) -> ValidationResult:
    """Extract and validate command parameters.

    ``definition`` is a :class:`~foldercli.runtime.definitions.ParamsDefinition`
    or anything :meth:`ParamsDefinition.from_export` accepts.
    """
    from foldercli.runtime.definitions import ParamsDefinition

    definition = ParamsDefinition.from_export(definition)
    mappings = definition.mappings
    schema = definition.schema

    if mappings and schema is None:
        record, issues = extract_mapped(mappings, args, options)
        order = [m.field for m in mappings]
        if issues:
            return ValidationResult.failure(_order_issues(issues, order), record)
        return validate_data(_implied_schema(mappings), record, order=order)

    if schema is not None and not mappings:
        record = {f"arg{i}": value for i, value in enumerate(args)}
        record.update(options)
        return validate_data(schema, record)

    if schema is not None:
        record, issues = extract_mapped(mappings, args, options, schema=schema, enforce_required=False)
        order = [m.field for m in mappings] + [f for f in schema_fields(schema) if f not in {m.field for m in mappings}]
        result = validate_data(schema, record, order=order)
        if issues:
            failed = {issue.field for issue in issues}
            combined = issues + [i for i in result.issues if (i.path[0] if i.path else "") not in failed]
            return ValidationResult.failure(_order_issues(combined, order), result.data)
        return result

    raise MalformedSchemaError("Params definition needs mappings, a schema, or both")


__all__ = [
    "FIELD_TYPES",
    "MISSING",
    "CoercionError",
    "FieldIssue",
    "ParamMapping",
    "ValidationResult",
    "coerce_value",
    "declared_type",
    "extract_mapped",
    "schema_kind",
    "validate_data",
    "validate_params",
]
