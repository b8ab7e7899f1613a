import os
import sys
from pathlib import Path

import pytest

# Keep the repository free of Python bytecode and __pycache__ artifacts during tests.
sys.dont_write_bytecode = True

TESTS_ROOT = Path(__file__).resolve().parent
REPO_ROOT = TESTS_ROOT.parent
SRC_ROOT = REPO_ROOT / "src"

# Make src/ importable as 'foldercli' and tests/ as 'helpers'
for p in (SRC_ROOT, TESTS_ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))


from foldercli.core.log_setup import reset_logging_for_tests
from helpers.app_tree import GREET_APP, load_generated, write_app


@pytest.fixture(autouse=True)
def _isolate_logging():
    yield
    reset_logging_for_tests()


@pytest.fixture(autouse=True)
def _no_foldercli_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """FOLDERCLI_* variables from the developer shell must not leak into tests."""
    for key in list(os.environ):
        if key.startswith("FOLDERCLI_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def make_app(tmp_path: Path):
    """Return a writer creating an ``app/`` tree inside ``tmp_path``."""

    def _make(files, root: str = "app") -> Path:
        return write_app(tmp_path / root, files)

    return _make


@pytest.fixture
def greet_app(make_app) -> Path:
    return make_app(GREET_APP)


@pytest.fixture
def build_cli_module(tmp_path: Path):
    """Build the tree under ``tmp_path/app`` and import the generated file."""
    from foldercli.core.builder import build_cli
    from foldercli.core.config import load_build_config

    def _build(**overrides):
        config = load_build_config(tmp_path, overrides, environ={})
        result = build_cli(config)
        return load_generated(result.output_path), result

    return _build
