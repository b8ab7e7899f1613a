"""Tests for route compilation and argv matching."""
from __future__ import annotations

from typing import Sequence

import pytest

from foldercli.core.builder import compile_app
from foldercli.core.exceptions import ConfigurationError
from foldercli.core.routes import CommandRoute, ModuleRef, RouteTable


def _route(path: str, aliases: Sequence[str] = ()) -> CommandRoute:
    segments = tuple(s for s in path.split("/") if s)
    ref = ModuleRef(path=f"{path}/command.py".lstrip("/"), role="command", kind="function", arity=1)
    return CommandRoute(path=path, segments=segments, command=ref, aliases=tuple(aliases))


class TestMatching:
    def test_literal_beats_dynamic_at_same_length(self) -> None:
        table = RouteTable([_route("user/[id]"), _route("user/list")])
        assert table.match(["user", "list"]).route.path == "user/list"
        match = table.match(["user", "42"])
        assert match.route.path == "user/[id]"
        assert match.params == {"id": "42"}

    def test_literal_with_positionals_beats_sibling_variadic(self) -> None:
        table = RouteTable([_route("user/create"), _route("user/[...rest]")])
        match = table.match(["user", "create", "ada", "ada@x.io"])
        assert match.route.path == "user/create"
        assert match.consumed == 2
        assert match.remaining == ("ada", "ada@x.io")
        assert table.match(["user", "delete", "7"]).route.path == "user/[...rest]"

    def test_shorter_route_beats_empty_variadic(self) -> None:
        """``greet`` wins over ``greet/[...rest]`` when nothing follows."""
        table = RouteTable([_route("greet"), _route("greet/[...rest]")])
        assert table.match(["greet"]).route.path == "greet"

    def test_variadic_collects_remaining_tokens(self) -> None:
        table = RouteTable([_route("greet"), _route("greet/[...rest]")])
        match = table.match(["greet", "a", "b"])
        assert match.route.path == "greet/[...rest]"
        assert match.params == {"rest": ["a", "b"]}
        assert match.remaining == ()

    def test_longest_match_leaves_remaining_tokens(self) -> None:
        table = RouteTable([_route("greet"), _route("user/create")])
        match = table.match(["greet", "Ada", "Lovelace"])
        assert match.route.path == "greet"
        assert match.consumed == 1
        assert match.remaining == ("Ada", "Lovelace")

    def test_root_is_fallback(self) -> None:
        table = RouteTable([_route(""), _route("greet")])
        match = table.match(["something"])
        assert match.route.is_root
        assert match.consumed == 0
        assert match.remaining == ("something",)
        assert table.match(["greet"]).route.path == "greet"

    def test_no_match_without_root(self) -> None:
        table = RouteTable([_route("greet")])
        assert table.match(["nope"]) is None
        assert table.match([]) is None

    def test_alias_replaces_last_segment(self) -> None:
        table = RouteTable([_route("user/create", aliases=["add"])])
        match = table.match(["user", "add", "Ada"])
        assert match.route.path == "user/create"
        assert match.remaining == ("Ada",)


class TestValidation:
    def test_routes_ordered_shallow_first(self) -> None:
        table = RouteTable([_route("b/c"), _route("z"), _route("a")])
        assert [r.path for r in table] == ["a", "z", "b/c"]

    def test_duplicate_path(self) -> None:
        with pytest.raises(ConfigurationError, match="Duplicate command path"):
            RouteTable([_route("greet"), _route("greet")])

    def test_variadic_must_be_last(self) -> None:
        with pytest.raises(ConfigurationError, match="must be the last segment"):
            RouteTable([_route("[...rest]/more")])

    def test_repeated_parameter_name(self) -> None:
        with pytest.raises(ConfigurationError, match="Repeated dynamic parameter"):
            RouteTable([_route("[id]/[id]")])

    def test_dynamic_siblings_are_ambiguous(self) -> None:
        with pytest.raises(ConfigurationError, match="Ambiguous routes"):
            RouteTable([_route("user/[id]"), _route("user/[name]")])

    def test_alias_colliding_with_command(self) -> None:
        with pytest.raises(ConfigurationError, match="Ambiguous routes"):
            RouteTable([_route("remove", aliases=["rm"]), _route("rm")])

    def test_embedded_form_rebuilds_same_table(self) -> None:
        table = RouteTable([_route("greet", aliases=["hi"]), _route("user/[id]")])
        rebuilt = RouteTable.from_dicts(table.to_dicts())
        assert rebuilt.routes == table.routes


class TestCompileRoutes:
    def test_help_metadata_merged_into_route(self, greet_app) -> None:
        compiled = compile_app(greet_app, cli_name="cli", workers=1)
        greet = compiled.table.get("greet")
        assert greet.description == "Say hello to someone"
        assert greet.aliases == ("hi",)
        assert greet.examples == ("greet", "greet Ada")
        assert greet.params is not None and greet.params.kind == "object"

    def test_command_docstring_used_without_help(self, make_app) -> None:
        app = make_app({"ping/command.py": '"""Check connectivity."""\n\ndef command(ctx):\n    pass\n'})
        route = compile_app(app, cli_name="cli", workers=1).table.get("ping")
        assert route.description == "Check connectivity."
        assert route.help_is_static

    def test_module_refs_are_relative(self, greet_app) -> None:
        route = compile_app(greet_app, cli_name="cli", workers=1).table.get("user/create")
        assert route.command.path == "user/create/command.py"
        assert route.command.is_async is True
        assert route.params.kind == "function"

    def test_invalid_params_module_excludes_command(self, make_app) -> None:
        app = make_app(
            {
                "good/command.py": "def command(ctx):\n    pass\n",
                "bad/command.py": "def command(ctx):\n    pass\n",
                "bad/params.py": "from somewhere import params\n",
            }
        )
        compiled = compile_app(app, cli_name="cli", workers=1)
        assert [r.path for r in compiled.table] == ["good"]
        assert len(compiled.diagnostics) == 1

    def test_invalid_help_module_is_dropped(self, make_app) -> None:
        app = make_app(
            {
                "greet/command.py": "def command(ctx):\n    pass\n",
                "greet/help.py": "x = 1\n",
            }
        )
        route = compile_app(app, cli_name="cli", workers=1).table.get("greet")
        assert route is not None
        assert route.help is None

    def test_manifest_reads_static_version(self, make_app) -> None:
        app = make_app(
            {
                "command.py": "def command(ctx):\n    pass\n",
                "version.py": "version = {'version': '3.1.4', 'metadata': {'author': 'Ada'}}\n",
            }
        )
        manifest = compile_app(app, cli_name="tool", workers=1).manifest
        assert manifest.version == "3.1.4"
        assert manifest.version_metadata == {"author": "Ada"}
        assert manifest.verbose_env_var == "TOOL_VERBOSE"

    def test_configured_version_overrides_module(self, make_app) -> None:
        app = make_app({"command.py": "def command(ctx):\n    pass\n", "version.py": "version = '1.0'\n"})
        manifest = compile_app(app, cli_name="tool", version="9.0", workers=1).manifest
        assert manifest.version == "9.0"
