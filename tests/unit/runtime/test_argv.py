"""Tests for the generated CLI argv tokenizer."""
from __future__ import annotations

from foldercli.runtime.argv import parse_argv


class TestParseArgv:
    def test_positionals_and_options(self) -> None:
        parsed = parse_argv(["user", "create", "Ada", "--email", "ada@example.com"])
        assert parsed.positional == ("user", "create", "Ada")
        assert parsed.options == {"email": "ada@example.com"}

    def test_equals_form(self) -> None:
        assert parse_argv(["--name=Ada Lovelace"]).options == {"name": "Ada Lovelace"}

    def test_trailing_flag_is_true(self) -> None:
        assert parse_argv(["run", "--force"]).options == {"force": True}

    def test_flag_followed_by_flag(self) -> None:
        assert parse_argv(["--dry-run", "--force"]).options == {"dry-run": True, "force": True}

    def test_short_flag(self) -> None:
        parsed = parse_argv(["-q", "file"])
        assert parsed.options == {"q": True}
        assert parsed.positional == ("file",)

    def test_double_dash_ends_options(self) -> None:
        parsed = parse_argv(["echo", "--", "--not-an-option", "-x"])
        assert parsed.positional == ("echo", "--not-an-option", "-x")
        assert parsed.options == {}

    def test_negative_number_is_a_value(self) -> None:
        parsed = parse_argv(["--offset", "-5", "-2.5"])
        assert parsed.options == {"offset": "-5"}
        assert parsed.positional == ("-2.5",)

    def test_help_never_consumes_a_value(self) -> None:
        parsed = parse_argv(["greet", "--help", "Ada"])
        assert parsed.wants_help
        assert parsed.positional == ("greet", "Ada")

    def test_short_help_and_version(self) -> None:
        assert parse_argv(["-h"]).wants_help
        assert parse_argv(["-v"]).wants_version
        assert not parse_argv(["--verbose"]).wants_version

    def test_help_given_a_value_is_not_help(self) -> None:
        """``--help=x`` is an ordinary string option."""
        assert not parse_argv(["--help=x"]).wants_help
