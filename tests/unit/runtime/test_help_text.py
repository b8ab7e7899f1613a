"""Tests for help and version rendering."""
from __future__ import annotations

from foldercli.core.routes import AppManifest, CommandRoute, ModuleRef, RouteTable
from foldercli.runtime.definitions import HelpDefinition, ParamsDefinition
from foldercli.runtime.help import merge_help, render_command_help, render_global_help, render_version


def _route(path: str, **kwargs) -> CommandRoute:
    segments = tuple(s for s in path.split("/") if s)
    ref = ModuleRef(path=f"{path}/command.py", role="command", kind="function")
    return CommandRoute(path=path, segments=segments, command=ref, **kwargs)


class TestCommandHelp:
    def test_full_layout(self) -> None:
        route = _route(
            "user/create",
            description="Create a user",
            examples=("user create Ada ada@example.com",),
            aliases=("add",),
            additional_help="Users are stored locally.",
        )
        params = ParamsDefinition(
            mappings=(
                {"field": "name", "arg_index": 0, "option": "name", "description": "Full name"},
                {"field": "admin", "option": "admin", "type": "boolean"},
            )
        )
        text = render_command_help("cli", route, params=params)
        assert text.splitlines() == [
            "Usage: cli user create [options]",
            "",
            "Create a user",
            "",
            "Arguments:",
            "  [1] name (or --name)  Full name",
            "",
            "Options:",
            "  --admin  admin",
            "",
            "Examples:",
            "  cli user create Ada ada@example.com",
            "",
            "Aliases: add",
            "",
            "Users are stored locally.",
        ]

    def test_loaded_values_override_static(self) -> None:
        route = _route("greet", description="static", examples=("greet",))
        merged = merge_help(route, HelpDefinition(description="loaded"))
        assert merged.description == "loaded"
        assert merged.examples == ("greet",)


class TestGlobalHelp:
    def test_lists_commands_without_root(self) -> None:
        table = RouteTable([_route(""), _route("greet", description="Say hello"), _route("user/[id]")])
        manifest = AppManifest(cli_name="cli", version="1.0", description="Demo tool", version_metadata={"author": "Ada"})
        lines = render_global_help(manifest, table).splitlines()
        assert lines[:2] == ["cli 1.0", "Demo tool"]
        assert "  greet      Say hello" in lines
        assert "  user [id]" in lines
        assert lines[-1] == "Author: Ada"

    def test_empty_table(self) -> None:
        text = render_global_help(AppManifest(cli_name="cli"), RouteTable([]))
        assert "  No commands available" in text.splitlines()


class TestVersion:
    def test_unknown_version(self) -> None:
        assert render_version(None, {}) == "unknown"

    def test_author_line(self) -> None:
        assert render_version("1.2.3", {"author": "Ada"}) == "1.2.3\nAuthor: Ada"
