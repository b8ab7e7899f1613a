"""
argv tokenizer for generated CLIs.

Grammar:

- ``--key value`` and ``--key=value`` set a string option;
- ``--key`` with no following non-flag token sets ``True``;
- ``-x`` sets the short boolean flag ``x``;
- ``--`` ends option parsing;
- everything else is positional.

``--help``/``-h`` and ``--version``/``-v`` never consume a value.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Sequence, Tuple

HELP_FLAGS = ("help", "h")
VERSION_FLAGS = ("version", "v")
_NO_VALUE = frozenset({"help", "version"})
_NUMBER_RE = re.compile(r"-\d+(\.\d+)?")


@dataclass(frozen=True)
class ParsedArgv:
    positional: Tuple[str, ...] = ()
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def wants_help(self) -> bool:
        return any(self.options.get(flag) is True for flag in HELP_FLAGS)

    @property
    def wants_version(self) -> bool:
        return any(self.options.get(flag) is True for flag in VERSION_FLAGS)


def _is_flag(token: str) -> bool:
    return token.startswith("-") and token != "-" and not _NUMBER_RE.fullmatch(token)


def parse_argv(argv: Sequence[str]) -> ParsedArgv:
    positional = []
    options: Dict[str, Any] = {}
    tokens = list(argv)
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token == "--":
            positional.extend(tokens[i + 1:])
            break
        if token.startswith("--") and len(token) > 2:
            body = token[2:]
            if "=" in body:
                key, value = body.split("=", 1)
                options[key] = value
            elif body not in _NO_VALUE and i + 1 < len(tokens) and not _is_flag(tokens[i + 1]):
                options[body] = tokens[i + 1]
                i += 1
            else:
                options[body] = True
        elif _is_flag(token):
            options[token[1:]] = True
        else:
            positional.append(token)
        i += 1
    return ParsedArgv(positional=tuple(positional), options=options)


__all__ = ["HELP_FLAGS", "VERSION_FLAGS", "ParsedArgv", "parse_argv"]
