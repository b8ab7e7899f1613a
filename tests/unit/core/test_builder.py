"""Tests for the build pipeline."""
from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from foldercli.core.builder import build_cli
from foldercli.core.config import load_build_config
from foldercli.core.exceptions import ConfigurationError
from foldercli.core.io import read_yaml, write_text_atomic


def _config(root: Path, **overrides):
    return load_build_config(root, overrides, environ={})


class TestBuildCli:
    def test_writes_executable_dispatcher(self, greet_app: Path, tmp_path: Path) -> None:
        result = build_cli(_config(tmp_path))
        assert result.output_path == tmp_path.resolve() / "dist" / "cli.py"
        assert result.written is True
        mode = stat.S_IMODE(os.stat(result.output_path).st_mode)
        assert mode & stat.S_IXUSR
        assert result.to_dict()["commands"] == ["greet", "user/[id]", "user/create", "user/list"]

    def test_rebuild_without_changes_is_a_no_op(self, greet_app: Path, tmp_path: Path) -> None:
        first = build_cli(_config(tmp_path))
        before = first.output_path.read_bytes()
        second = build_cli(_config(tmp_path))
        assert second.written is False
        assert second.output_path.read_bytes() == before

    def test_change_in_tree_rewrites(self, greet_app: Path, tmp_path: Path) -> None:
        build_cli(_config(tmp_path))
        (greet_app / "bye").mkdir()
        (greet_app / "bye" / "command.py").write_text("def command(ctx):\n    pass\n", encoding="utf-8")
        result = build_cli(_config(tmp_path))
        assert result.written is True
        assert "'bye'" in result.output_path.read_text(encoding="utf-8")

    def test_missing_app_dir(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="App directory not found"):
            build_cli(_config(tmp_path))

    def test_strict_mode_fails_on_diagnostics(self, make_app, tmp_path: Path) -> None:
        make_app({"ok/command.py": "def command(ctx):\n    pass\n", "bad/command.py": "x = 1\n"})
        with pytest.raises(ConfigurationError, match="1 module"):
            build_cli(_config(tmp_path, strict=True))

    def test_lenient_mode_reports_diagnostics(self, make_app, tmp_path: Path) -> None:
        make_app({"ok/command.py": "def command(ctx):\n    pass\n", "bad/command.py": "x = 1\n"})
        result = build_cli(_config(tmp_path))
        assert [r.path for r in result.compiled.table] == ["ok"]
        assert len(result.to_dict()["diagnostics"]) == 1

    def test_env_types_written_for_static_env(self, make_app, tmp_path: Path) -> None:
        make_app(
            {
                "command.py": "def command(ctx):\n    pass\n",
                "env.py": "env = {'TOKEN': {'type': 'string', 'required': True}}\n",
            }
        )
        result = build_cli(_config(tmp_path))
        assert result.env_types_path == tmp_path.resolve() / "dist" / "env_types.py"
        assert "'TOKEN': str," in result.env_types_path.read_text(encoding="utf-8")

    def test_empty_tree_still_builds(self, make_app, tmp_path: Path, caplog) -> None:
        make_app({"README.txt": "nothing here\n"})
        result = build_cli(_config(tmp_path))
        assert result.output_path.is_file()
        assert "No commands found" in caplog.text


class TestIo:
    def test_atomic_write_replaces_content(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "out.txt"
        write_text_atomic(target, "one")
        write_text_atomic(target, "two", mode=0o600)
        assert target.read_text(encoding="utf-8") == "two"
        assert stat.S_IMODE(os.stat(target).st_mode) == 0o600
        assert [p.name for p in target.parent.iterdir()] == ["out.txt"]

    def test_read_yaml_default_for_missing(self, tmp_path: Path) -> None:
        assert read_yaml(tmp_path / "none.yaml", default={"a": 1}) == {"a": 1}
        with pytest.raises(FileNotFoundError):
            read_yaml(tmp_path / "none.yaml", raise_on_error=True)
