"""Tests for lazy handler module loading."""
from __future__ import annotations

import asyncio
import sys
import types
from pathlib import Path

import pytest

from foldercli.core.exceptions import ModuleLoadError
from foldercli.core.routes import ModuleRef
from foldercli.runtime.loader import ModuleLoader, import_module_from_path, materialize


def _module(**attrs) -> types.ModuleType:
    module = types.ModuleType("fake")
    for key, value in attrs.items():
        setattr(module, key, value)
    return module


class TestModuleLoader:
    def test_concurrent_requests_import_once(self, tmp_path: Path) -> None:
        calls = []

        async def slow_load(path: Path):
            calls.append(path)
            await asyncio.sleep(0)
            return _module(command=lambda ctx: None)

        loader = ModuleLoader(tmp_path, slow_load)

        async def scenario():
            return await asyncio.gather(*(loader.load("greet/command.py") for _ in range(5)))

        modules = asyncio.run(scenario())
        assert len(calls) == 1
        assert all(m is modules[0] for m in modules)
        assert loader.import_count == {(tmp_path / "greet/command.py").resolve(): 1}

    def test_missing_export(self, tmp_path: Path) -> None:
        loader = ModuleLoader(tmp_path, lambda path: _module())
        ref = ModuleRef(path="greet/command.py", role="command", kind="function")
        with pytest.raises(ModuleLoadError, match="has no `command` export"):
            asyncio.run(loader.export(ref))

    def test_import_failure_wrapped(self, tmp_path: Path) -> None:
        def broken(path: Path):
            raise RuntimeError("boom")

        loader = ModuleLoader(tmp_path, broken)
        with pytest.raises(ModuleLoadError) as excinfo:
            asyncio.run(loader.load("x.py"))
        assert "boom" in str(excinfo.value)
        assert isinstance(excinfo.value.__cause__, RuntimeError)

    def test_import_from_path(self, tmp_path: Path) -> None:
        source = tmp_path / "command.py"
        source.write_text("VALUE = 41 + 1\n", encoding="utf-8")
        assert import_module_from_path(source).VALUE == 42

    def test_sibling_helpers_importable_by_name(self, tmp_path: Path) -> None:
        for name, value in (("create", "'create'"), ("delete", "'delete'")):
            folder = tmp_path / "user" / name
            folder.mkdir(parents=True)
            (folder / "checks.py").write_text(f"OWNER = {value}\n", encoding="utf-8")
            (folder / "command.py").write_text("from checks import OWNER\n", encoding="utf-8")
        path_before = list(sys.path)

        created = import_module_from_path(tmp_path / "user" / "create" / "command.py")
        deleted = import_module_from_path(tmp_path / "user" / "delete" / "command.py")

        assert (created.OWNER, deleted.OWNER) == ("create", "delete")
        assert sys.path == path_before
        assert "checks" not in sys.modules

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ModuleLoadError, match="Module not found"):
            import_module_from_path(tmp_path / "absent.py")


class TestMaterialize:
    def _ref(self, kind: str, arity: int = 0) -> ModuleRef:
        return ModuleRef(path="x.py", role="params", kind=kind, arity=arity)

    def test_object_passes_through(self) -> None:
        value = {"mappings": []}
        assert asyncio.run(materialize(value, self._ref("object"), None)) is value

    def test_factory_receives_context(self) -> None:
        result = asyncio.run(materialize(lambda ctx: {"seen": ctx}, self._ref("function", 1), "CTX"))
        assert result == {"seen": "CTX"}

    def test_zero_argument_factory(self) -> None:
        assert asyncio.run(materialize(lambda: [1], self._ref("function", 0), "CTX")) == [1]

    def test_async_factory_awaited(self) -> None:
        async def factory(ctx):
            return {"ok": True}

        assert asyncio.run(materialize(factory, self._ref("function", 1), None)) == {"ok": True}
