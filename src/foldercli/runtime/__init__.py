"""
Runtime support imported by generated dispatchers.

A generated ``cli.py`` only needs :func:`run`; handler modules use the
context and definition types re-exported from :mod:`foldercli`.
"""
from foldercli.runtime.dispatcher import DispatchState, Dispatcher, run

__all__ = ["DispatchState", "Dispatcher", "run"]
