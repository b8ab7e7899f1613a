"""foldercli builder command line."""
from __future__ import annotations

from foldercli.cli._args import (
    add_app_dir_flag,
    add_json_flag,
    add_project_root_flag,
    add_verbose_flag,
    get_project_root,
)
from foldercli.cli._output import OutputFormatter

__all__ = [
    "OutputFormatter",
    "add_app_dir_flag",
    "add_json_flag",
    "add_project_root_flag",
    "add_verbose_flag",
    "get_project_root",
]
