from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from foldercli.runtime.validation import FieldIssue


class ErrorKind(str, Enum):
    """Classification used by the error routing hierarchy."""

    VALIDATION = "validation"
    ENVIRONMENT = "environment"
    MODULE_LOAD = "module_load"
    GENERIC = "generic"


class FolderCliError(Exception):
    """Base exception for foldercli."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            # Store a shallow copy to avoid accidental mutation.
            self.context = dict(context)
        else:
            self.context = {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.__class__.__name__,
            "context": self.context,
        }


# ---------------------------------------------------------------------------
# Build time
# ---------------------------------------------------------------------------


class ConfigurationError(FolderCliError):
    """Fatal build-time error: missing app directory, invalid config, malformed route table."""


class ModuleShapeError(FolderCliError):
    """A module has no recognizable export shape for its role.

    Collected as a per-module diagnostic; never aborts the batch.
    """

    def __init__(self, message: str, *, path: str, role: str) -> None:
        super().__init__(message, context={"path": path, "role": role})
        self.path = path
        self.role = role


class MalformedSchemaError(FolderCliError, ValueError):
    """Raised when a parameter or environment schema cannot be interpreted."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        FolderCliError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------


class DispatchError(FolderCliError):
    """Base class for errors raised by the generated dispatcher."""

    kind: ErrorKind = ErrorKind.GENERIC


class _IssuesError(DispatchError):
    issues: tuple["FieldIssue", ...]

    def __init__(
        self,
        message: str,
        issues: Sequence["FieldIssue"],
        *,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context=context)
        self.issues = tuple(issues)

    def to_json_error(self) -> Dict[str, Any]:
        payload = super().to_json_error()
        payload["issues"] = [{"path": issue.field, "message": issue.message} for issue in self.issues]
        return payload


class EnvironmentValidationError(_IssuesError):
    """The process environment does not satisfy the env schema."""

    kind = ErrorKind.ENVIRONMENT


class ParameterValidationError(_IssuesError):
    """Command parameters failed validation; carries every failing field."""

    kind = ErrorKind.VALIDATION


class ModuleLoadError(DispatchError):
    """A handler module could not be imported."""

    kind = ErrorKind.MODULE_LOAD

    def __init__(self, module_path: str, message: str = "") -> None:
        super().__init__(
            message or f"Could not load module: {module_path}",
            context={"module_path": module_path},
        )
        self.module_path = module_path


class UnknownCommandError(DispatchError):
    """argv does not match any route."""

    def __init__(self, tokens: Sequence[str]) -> None:
        command = " ".join(tokens)
        super().__init__(f"Unknown command: {command}" if command else "No command given",
                         context={"tokens": list(tokens)})
        self.tokens = tuple(tokens)


def classify_error(error: BaseException) -> ErrorKind:
    """Map any exception to an :class:`ErrorKind`."""
    if isinstance(error, DispatchError):
        return error.kind
    return ErrorKind.GENERIC


__all__ = [
    "ErrorKind",
    "FolderCliError",
    "ConfigurationError",
    "ModuleShapeError",
    "MalformedSchemaError",
    "DispatchError",
    "EnvironmentValidationError",
    "ParameterValidationError",
    "ModuleLoadError",
    "UnknownCommandError",
    "classify_error",
]
