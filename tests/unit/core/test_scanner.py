"""Tests for the command tree scanner."""
from __future__ import annotations

import os
from pathlib import Path

import pytest

from foldercli.core.exceptions import ConfigurationError
from foldercli.core.scanner import parse_dynamic_segment, scan_app_directory

_CMD = "def command(ctx):\n    pass\n"


class TestDynamicSegments:
    def test_single_parameter(self) -> None:
        param = parse_dynamic_segment("[id]")
        assert param.name == "id"
        assert param.optional is False
        assert param.segment == "[id]"

    def test_variadic_parameter(self) -> None:
        param = parse_dynamic_segment("[...paths]")
        assert param.name == "paths"
        assert param.optional is True
        assert param.segment == "[...paths]"

    def test_name_must_be_identifier(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_dynamic_segment("[1st]")


class TestScanAppDirectory:
    def test_missing_directory_is_fatal(self, tmp_path: Path) -> None:
        """A missing app directory aborts the build."""
        with pytest.raises(ConfigurationError, match="App directory not found"):
            scan_app_directory(tmp_path / "nope")

    def test_commands_sorted_by_depth_then_path(self, make_app) -> None:
        app = make_app(
            {
                "user/create/command.py": _CMD,
                "zeta/command.py": _CMD,
                "alpha/command.py": _CMD,
                "command.py": _CMD,
            }
        )
        scan = scan_app_directory(app)
        assert [node.path for node in scan.commands] == ["", "alpha", "zeta", "user/create"]

    def test_directories_without_command_are_not_routes(self, make_app) -> None:
        """Intermediate directories only contribute path segments."""
        app = make_app({"user/create/command.py": _CMD, "user/params.py": "params = []\n"})
        scan = scan_app_directory(app)
        assert [node.path for node in scan.commands] == ["user/create"]

    def test_companion_modules_are_attached(self, make_app) -> None:
        app = make_app(
            {
                "greet/command.py": _CMD,
                "greet/params.py": "params = []\n",
                "greet/help.py": "help = {}\n",
                "greet/error.py": "def error(err):\n    return 1\n",
            }
        )
        (node,) = scan_app_directory(app).commands
        assert node.has_params and node.has_help and node.has_error
        assert node.handlers.params == app.resolve() / "greet" / "params.py"

    def test_root_level_modules(self, make_app) -> None:
        app = make_app(
            {
                "command.py": _CMD,
                "middleware.py": "def middleware(base):\n    pass\n",
                "global_error.py": "def global_error(err):\n    return 1\n",
                "env.py": "env = {}\n",
                "version.py": "version = '1.0'\n",
            }
        )
        root = scan_app_directory(app).root
        assert root.middleware is not None
        assert root.global_error is not None
        assert root.env is not None
        assert root.version is not None

    def test_dynamic_segments_recorded(self, make_app) -> None:
        app = make_app({"files/[...paths]/command.py": _CMD, "user/[id]/command.py": _CMD})
        nodes = {node.path: node for node in scan_app_directory(app).commands}
        assert [p.name for p in nodes["user/[id]"].dynamic_params] == ["id"]
        assert nodes["files/[...paths]"].dynamic_params[0].optional is True

    def test_private_and_hidden_directories_skipped(self, make_app) -> None:
        app = make_app(
            {
                "_shared/command.py": _CMD,
                ".cache/command.py": _CMD,
                "ok/command.py": _CMD,
            }
        )
        assert [node.path for node in scan_app_directory(app).commands] == ["ok"]

    def test_module_paths_lists_every_role(self, make_app) -> None:
        app = make_app(
            {
                "greet/command.py": _CMD,
                "greet/params.py": "params = []\n",
                "env.py": "env = {}\n",
            }
        )
        roles = sorted(role for _, role in scan_app_directory(app).module_paths())
        assert roles == ["command", "env", "params"]

    def test_unreadable_directory_is_skipped_with_warning(self, make_app, monkeypatch) -> None:
        app = make_app({"locked/command.py": _CMD, "open/command.py": _CMD, "zeta/command.py": _CMD})
        real_scandir = os.scandir

        def scandir(path):
            if Path(path).name == "locked":
                raise PermissionError(13, "Permission denied", str(path))
            return real_scandir(path)

        monkeypatch.setattr(os, "scandir", scandir)
        result = scan_app_directory(app)

        assert [node.path for node in result.commands] == ["open", "zeta"]
        assert len(result.warnings) == 1
        assert str(app.resolve() / "locked") in result.warnings[0]
        assert "Permission denied" in result.warnings[0]
