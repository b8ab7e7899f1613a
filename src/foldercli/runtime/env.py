"""Environment schema resolution."""
from __future__ import annotations

import logging
from typing import Any, Mapping

from foldercli.runtime.validation import CoercionError, ValidationResult, coerce_value, declared_type, schema_kind, validate_data

logger = logging.getLogger(__name__)


def resolve_environment(schema: Any, environ: Mapping[str, str]) -> ValidationResult:
    """Validate ``environ`` against an env schema.

    Field schemas and JSON Schemas only see the variables they declare; a
    declared variable that is unset and has no default resolves to ``None``.
    A custom validator receives the whole environment.
    """
    kind = schema_kind(schema)
    if kind == "custom":
        return validate_data(schema, dict(environ))

    if kind == "json":
        names = list((schema.get("properties") or {}).keys())
    else:
        names = list(schema.keys())

    record = {}
    for name in names:
        if name not in environ:
            continue
        value: Any = environ[name]
        # Uncoercible values are left as-is for the schema to reject.
        type_name = declared_type(schema, name) if kind == "json" else None
        if type_name is not None:
            try:
                value = coerce_value(value, type_name)
            except CoercionError:
                pass
        record[name] = value

    result = validate_data(schema, record, order=names)
    if not result.success:
        logger.debug("Environment validation failed: %d issue(s)", len(result.issues))
        return result
    data = {name: result.data.get(name) for name in names}
    return ValidationResult.ok(data)


__all__ = ["resolve_environment"]
