from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

_FOLDERCLI_HANDLER: logging.Handler | None = None
_CONFIGURED_TARGET: str | None = None

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
STDERR_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _level_from_name(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(*, level: str = "WARNING", log_path: Optional[Path] = None) -> None:
    """Configure the ``foldercli`` logger hierarchy.

    Logs go to ``log_path`` when given, else to stderr. Idempotent per-process:
    calling again with the same target only adjusts the level.
    """
    global _FOLDERCLI_HANDLER, _CONFIGURED_TARGET

    target = str(Path(log_path).resolve()) if log_path is not None else "<stderr>"
    pkg_logger = logging.getLogger("foldercli")
    pkg_logger.setLevel(_level_from_name(level))

    if _CONFIGURED_TARGET == target and _FOLDERCLI_HANDLER is not None:
        _FOLDERCLI_HANDLER.setLevel(_level_from_name(level))
        return

    if _FOLDERCLI_HANDLER is not None:
        pkg_logger.removeHandler(_FOLDERCLI_HANDLER)
        _FOLDERCLI_HANDLER.close()
        _FOLDERCLI_HANDLER = None

    handler: logging.Handler
    if log_path is not None:
        Path(target).parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(target, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(STDERR_FORMAT))
    handler.setLevel(_level_from_name(level))
    pkg_logger.addHandler(handler)
    # Records handled here must not reach the root "lastResort" handler twice.
    pkg_logger.propagate = False

    _FOLDERCLI_HANDLER = handler
    _CONFIGURED_TARGET = target


def reset_logging_for_tests() -> None:
    """Test-only: remove the installed handler and restore propagation."""
    global _FOLDERCLI_HANDLER, _CONFIGURED_TARGET
    pkg_logger = logging.getLogger("foldercli")
    if _FOLDERCLI_HANDLER is not None:
        pkg_logger.removeHandler(_FOLDERCLI_HANDLER)
        _FOLDERCLI_HANDLER.close()
    pkg_logger.propagate = True
    pkg_logger.setLevel(logging.NOTSET)
    _FOLDERCLI_HANDLER = None
    _CONFIGURED_TARGET = None


__all__ = ["configure_logging", "reset_logging_for_tests"]
