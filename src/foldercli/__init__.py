"""
foldercli - build command-line programs from a directory of handler modules.

Each ``app/<path>/command.py`` becomes ``cli <path>``; companion modules
(``params.py``, ``help.py``, ``error.py``) and root-level modules
(``middleware.py``, ``global_error.py``, ``env.py``, ``version.py``) are wired
into one generated dispatcher.
"""

__version__ = "0.3.0"

from foldercli.runtime.context import BaseContext, EnvironmentSnapshot, ExecutionContext
from foldercli.runtime.definitions import CommandDefinition, HelpDefinition, ParamsDefinition
from foldercli.runtime.errors import ErrorContext, ErrorKind
from foldercli.runtime.validation import FieldIssue, ParamMapping, ValidationResult

__all__ = [
    "__version__",
    "BaseContext",
    "CommandDefinition",
    "EnvironmentSnapshot",
    "ErrorContext",
    "ErrorKind",
    "ExecutionContext",
    "FieldIssue",
    "HelpDefinition",
    "ParamMapping",
    "ParamsDefinition",
    "ValidationResult",
]
