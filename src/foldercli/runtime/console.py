"""Text sink used by the generated dispatcher."""
from __future__ import annotations

import sys
from typing import Optional, TextIO


class Console:
    """Write lines to stdout/stderr.

    Streams are looked up at write time unless given explicitly, so test
    capture of ``sys.stdout``/``sys.stderr`` works.
    """

    def __init__(self, stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None) -> None:
        self._stdout = stdout
        self._stderr = stderr

    def out(self, text: str = "") -> None:
        print(text, file=self._stdout or sys.stdout)

    def err(self, text: str = "") -> None:
        print(text, file=self._stderr or sys.stderr)

    def lines(self, lines, *, error: bool = False) -> None:
        write = self.err if error else self.out
        for line in lines:
            write(line)


__all__ = ["Console"]
