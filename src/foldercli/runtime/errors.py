"""
Error routing: command-local handler, then global handler, then the default.

Handlers receive an :class:`ErrorContext`. An ``int`` return value becomes
the exit code; anything else (including ``None``) means 1. An exception
raised by a handler is not routed again.
"""
from __future__ import annotations

import inspect
import logging
import traceback
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Tuple

from foldercli.core.exceptions import (
    EnvironmentValidationError,
    ErrorKind,
    ModuleLoadError,
    ParameterValidationError,
    classify_error,
)
from foldercli.runtime.console import Console
from foldercli.runtime.context import EnvironmentSnapshot, ExecutionContext
from foldercli.runtime.validation import FieldIssue

logger = logging.getLogger(__name__)

ErrorHandler = Callable[["ErrorContext"], Any]

DEFAULT_EXIT_CODE = 1


@dataclass(frozen=True)
class ErrorContext:
    error: BaseException
    kind: ErrorKind
    issues: Tuple[FieldIssue, ...] = ()
    context: Optional[ExecutionContext] = None
    env: EnvironmentSnapshot = field(default_factory=EnvironmentSnapshot)
    data: Mapping[str, Any] = field(default_factory=dict)
    verbose: bool = False

    @property
    def command(self) -> Tuple[str, ...]:
        return self.context.command if self.context is not None else ()

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__


def build_error_context(
    error: BaseException,
    *,
    context: Optional[ExecutionContext] = None,
    env: Optional[EnvironmentSnapshot] = None,
    data: Optional[Mapping[str, Any]] = None,
    verbose: bool = False,
) -> ErrorContext:
    issues = tuple(getattr(error, "issues", ()) or ())
    if env is None:
        env = context.env if context is not None else EnvironmentSnapshot()
    return ErrorContext(
        error=error,
        kind=classify_error(error),
        issues=issues,
        context=context,
        env=env,
        data=dict(data or {}),
        verbose=verbose,
    )


def exit_code_from(result: Any) -> int:
    if isinstance(result, int) and not isinstance(result, bool):
        return result
    return DEFAULT_EXIT_CODE


def format_error_report(err: ErrorContext) -> List[str]:
    """Lines of the built-in error report."""
    lines: List[str] = []
    error = err.error
    if err.kind is ErrorKind.VALIDATION:
        lines.append("Validation failed:")
    elif err.kind is ErrorKind.ENVIRONMENT:
        lines.append("Environment validation failed:")
    elif err.kind is ErrorKind.MODULE_LOAD:
        path = error.module_path if isinstance(error, ModuleLoadError) else "?"
        lines.append(f"Module load failed: {path}")
        lines.append(f"  {err.message}")
    else:
        lines.append(f"Error: {err.message}")

    if isinstance(error, (ParameterValidationError, EnvironmentValidationError)):
        for issue in err.issues:
            lines.append(f"  - {issue.field}: {issue.message}")
        if err.kind is ErrorKind.VALIDATION:
            lines.append("")
            lines.append("Use --help to see the expected parameters.")

    if err.verbose:
        lines.append("")
        lines.extend(
            "".join(traceback.format_exception(type(error), error, error.__traceback__)).rstrip().splitlines()
        )
    return lines


def default_error_handler(err: ErrorContext, console: Console) -> int:
    console.lines(format_error_report(err), error=True)
    return DEFAULT_EXIT_CODE


class ErrorHandlerHierarchy:
    """Local handler (optional) -> global handler (optional) -> default."""

    def __init__(
        self,
        *,
        local: Optional[ErrorHandler] = None,
        global_handler: Optional[ErrorHandler] = None,
        console: Optional[Console] = None,
        verbose: bool = False,
    ) -> None:
        self.local = local
        self.global_handler = global_handler
        self.console = console or Console()
        self.verbose = verbose

    def levels(self) -> List[Tuple[str, ErrorHandler]]:
        out: List[Tuple[str, ErrorHandler]] = []
        if self.local is not None:
            out.append(("local", self.local))
        if self.global_handler is not None:
            out.append(("global", self.global_handler))
        return out

    async def resolve(
        self,
        error: BaseException,
        *,
        context: Optional[ExecutionContext] = None,
        env: Optional[EnvironmentSnapshot] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> int:
        err = build_error_context(error, context=context, env=env, data=data, verbose=self.verbose)
        levels = self.levels()
        if not levels:
            logger.debug("Routing %s to default error handler", err.kind.value)
            return default_error_handler(err, self.console)

        # Only the nearest declared handler runs.
        level, handler = levels[0]
        logger.debug("Routing %s to %s error handler", err.kind.value, level)
        result = handler(err)
        if inspect.isawaitable(result):
            result = await result
        return exit_code_from(result)


__all__ = [
    "DEFAULT_EXIT_CODE",
    "ErrorContext",
    "ErrorHandlerHierarchy",
    "ErrorKind",
    "build_error_context",
    "default_error_handler",
    "exit_code_from",
    "format_error_report",
]
