"""
Root-level middleware chain.

``middleware.py`` exports a factory (or a list of factories). Each factory is
called once per run with a :class:`BaseContext` and returns a stage::

    def middleware(base):
        async def stage(ctx, next):
            ...
            await next()          # or: await next(replace(ctx, ...))
        return stage

A stage that never awaits ``next`` stops the run there: nothing downstream
executes and the exit code stays 0. Awaiting ``next`` twice runs the
downstream part twice, in order.
"""
from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from foldercli.runtime.context import BaseContext, ExecutionContext

logger = logging.getLogger(__name__)

Next = Callable[..., Awaitable[None]]
Stage = Callable[[ExecutionContext, Next], Any]
Terminal = Callable[[ExecutionContext], Awaitable[None]]


class MiddlewareChain:
    def __init__(self, stages: Sequence[Stage]) -> None:
        self.stages = tuple(stages)

    @classmethod
    async def build(cls, export: Any, base: BaseContext) -> "MiddlewareChain":
        """Call each factory once and collect the stages it returns."""
        factories = list(export) if isinstance(export, (list, tuple)) else [export]
        stages: List[Stage] = []
        for factory in factories:
            stage = factory(base)
            if inspect.isawaitable(stage):
                stage = await stage
            if not callable(stage):
                raise TypeError(
                    f"middleware factory {getattr(factory, '__name__', factory)!r} must return a callable stage"
                )
            stages.append(stage)
        logger.debug("Built middleware chain with %d stage(s)", len(stages))
        return cls(stages)

    async def run(self, ctx: ExecutionContext, terminal: Terminal) -> None:
        async def dispatch(index: int, current: ExecutionContext) -> None:
            if index == len(self.stages):
                await terminal(current)
                return

            async def next_(new_ctx: Optional[ExecutionContext] = None) -> None:
                await dispatch(index + 1, current if new_ctx is None else new_ctx)

            result = self.stages[index](current, next_)
            if inspect.isawaitable(result):
                await result

        await dispatch(0, ctx)


__all__ = ["MiddlewareChain", "Next", "Stage"]
