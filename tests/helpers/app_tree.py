"""Build throwaway command trees for tests."""
from __future__ import annotations

import importlib.util
import sys
import textwrap
from pathlib import Path
from typing import Dict, Mapping, Optional


def write_app(root: Path, files: Mapping[str, str]) -> Path:
    """Write ``files`` (relative path -> source) under ``root`` and return it."""
    root.mkdir(parents=True, exist_ok=True)
    for rel, source in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source).lstrip("\n"), encoding="utf-8")
    return root


def load_generated(path: Path, name: Optional[str] = None):
    """Import a generated dispatcher file as a fresh module."""
    module_name = name or f"_generated_{path.stem}_{abs(hash(str(path)))}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    spec.loader.exec_module(module)
    return module


GREET_APP: Dict[str, str] = {
    "greet/command.py": '''
        """Greet someone."""


        def command(ctx):
            print(f"Hello, {ctx.data['name']}!")
    ''',
    "greet/params.py": '''
        params = {
            "mappings": [
                {"field": "name", "arg_index": 0, "option": "name", "type": "string", "default": "World"},
            ],
        }
    ''',
    "greet/help.py": '''
        help = {
            "description": "Say hello to someone",
            "examples": ["greet", "greet Ada"],
            "aliases": ["hi"],
        }
    ''',
    "user/create/command.py": '''
        async def command(ctx):
            print(f"created {ctx.data['name']} <{ctx.data['email']}>")
    ''',
    "user/create/params.py": '''
        def params():
            return {
                "mappings": [
                    {"field": "name", "arg_index": 0, "option": "name", "type": "string", "required": True},
                    {"field": "email", "arg_index": 1, "option": "email", "type": "string", "required": True},
                ],
            }
    ''',
    "user/[id]/command.py": '''
        def command(ctx):
            print(f"user {ctx.params['id']}")
    ''',
    "user/list/command.py": '''
        def command(ctx):
            print("listing users")
    ''',
}
