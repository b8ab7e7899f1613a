"""Tests for error classification and the handler hierarchy."""
from __future__ import annotations

import asyncio
import io

from foldercli.core.exceptions import (
    EnvironmentValidationError,
    ErrorKind,
    ModuleLoadError,
    ParameterValidationError,
    UnknownCommandError,
    classify_error,
)
from foldercli.runtime.console import Console
from foldercli.runtime.context import ExecutionContext
from foldercli.runtime.errors import (
    ErrorHandlerHierarchy,
    build_error_context,
    exit_code_from,
    format_error_report,
)
from foldercli.runtime.validation import FieldIssue

ISSUES = (FieldIssue("name", "name is required"), FieldIssue("email", "email is required"))


class TestClassification:
    def test_kinds(self) -> None:
        assert classify_error(ParameterValidationError("x", ISSUES)) is ErrorKind.VALIDATION
        assert classify_error(EnvironmentValidationError("x", ())) is ErrorKind.ENVIRONMENT
        assert classify_error(ModuleLoadError("a.py")) is ErrorKind.MODULE_LOAD
        assert classify_error(UnknownCommandError(["x"])) is ErrorKind.GENERIC
        assert classify_error(KeyError("k")) is ErrorKind.GENERIC

    def test_exit_codes(self) -> None:
        assert exit_code_from(3) == 3
        assert exit_code_from(0) == 0
        assert exit_code_from(None) == 1
        assert exit_code_from(True) == 1
        assert exit_code_from("2") == 1

    def test_issues_in_json_payload(self) -> None:
        payload = ParameterValidationError("bad", ISSUES).to_json_error()
        assert payload["code"] == "ParameterValidationError"
        assert payload["issues"][0] == {"path": "name", "message": "name is required"}


class TestReport:
    def test_validation_report_lists_every_issue(self) -> None:
        err = build_error_context(ParameterValidationError("bad", ISSUES))
        assert format_error_report(err) == [
            "Validation failed:",
            "  - name: name is required",
            "  - email: email is required",
            "",
            "Use --help to see the expected parameters.",
        ]

    def test_environment_report(self) -> None:
        err = build_error_context(EnvironmentValidationError("env", (FieldIssue("TOKEN", "TOKEN is required"),)))
        assert format_error_report(err) == ["Environment validation failed:", "  - TOKEN: TOKEN is required"]

    def test_module_load_report(self) -> None:
        lines = format_error_report(build_error_context(ModuleLoadError("app/x.py", "broken import")))
        assert lines == ["Module load failed: app/x.py", "  broken import"]

    def test_generic_report_with_traceback(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError as exc:
            error = exc
        lines = format_error_report(build_error_context(error, verbose=True))
        assert lines[0] == "Error: boom"
        assert any(line.startswith("Traceback") for line in lines)

    def test_context_fields(self) -> None:
        ctx = ExecutionContext(command=("user", "create"))
        err = build_error_context(ValueError(""), context=ctx, data={"name": "Ada"})
        assert err.command == ("user", "create")
        assert err.message == "ValueError"
        assert err.data == {"name": "Ada"}


class TestHierarchy:
    def _resolve(self, hierarchy: ErrorHandlerHierarchy, error: Exception) -> int:
        return asyncio.run(hierarchy.resolve(error))

    def test_local_handler_preferred(self) -> None:
        seen = []
        hierarchy = ErrorHandlerHierarchy(
            local=lambda err: seen.append("local") or 3,
            global_handler=lambda err: seen.append("global") or 4,
        )
        assert self._resolve(hierarchy, RuntimeError("x")) == 3
        assert seen == ["local"]

    def test_global_handler_when_no_local(self) -> None:
        async def global_handler(err):
            return 4

        assert self._resolve(ErrorHandlerHierarchy(global_handler=global_handler), RuntimeError("x")) == 4

    def test_handler_returning_none_exits_one(self) -> None:
        hierarchy = ErrorHandlerHierarchy(local=lambda err: None)
        assert self._resolve(hierarchy, RuntimeError("x")) == 1

    def test_default_handler_prints_report(self) -> None:
        stderr = io.StringIO()
        hierarchy = ErrorHandlerHierarchy(console=Console(stdout=io.StringIO(), stderr=stderr))
        assert self._resolve(hierarchy, RuntimeError("boom")) == 1
        assert stderr.getvalue() == "Error: boom\n"
