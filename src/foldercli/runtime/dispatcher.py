"""
Runtime dispatcher used by every generated CLI.

One dispatch runs through::

    INIT -> ENV_RESOLVED -> MIDDLEWARE -> PARAM_VALIDATION -> HANDLER_EXEC -> DONE
                                                                           \\-> ERROR

``MIDDLEWARE`` is skipped without a ``middleware.py``; ``PARAM_VALIDATION``
without a ``params.py`` for the matched command. ``--help`` and
``--version`` are answered in ``INIT``.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import os
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from foldercli.core.exceptions import (
    EnvironmentValidationError,
    ModuleLoadError,
    ParameterValidationError,
    UnknownCommandError,
)
from foldercli.core.routes import AppManifest, CommandRoute, ModuleRef, RouteMatch, RouteTable
from foldercli.runtime.argv import ParsedArgv, parse_argv
from foldercli.runtime.console import Console
from foldercli.runtime.context import BaseContext, EnvironmentSnapshot, ExecutionContext
from foldercli.runtime.definitions import CommandDefinition, HelpDefinition, ParamsDefinition
from foldercli.runtime.env import resolve_environment
from foldercli.runtime.errors import ErrorHandler, ErrorHandlerHierarchy
from foldercli.runtime.help import merge_help, render_command_help, render_global_help, render_version
from foldercli.runtime.loader import LoadFunction, ModuleLoader, materialize
from foldercli.runtime.middleware import MiddlewareChain
from foldercli.runtime.validation import validate_params

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


class DispatchState(str, Enum):
    INIT = "INIT"
    ENV_RESOLVED = "ENV_RESOLVED"
    MIDDLEWARE = "MIDDLEWARE"
    PARAM_VALIDATION = "PARAM_VALIDATION"
    HANDLER_EXEC = "HANDLER_EXEC"
    DONE = "DONE"
    ERROR = "ERROR"


class Dispatcher:
    """Drive one invocation of a generated CLI.

    Args:
        manifest: ``AppManifest`` or its dict form (as embedded in the
            generated file).
        routes: ``RouteTable`` or a list of route dicts.
        app_dir: Directory the module paths in ``routes`` are relative to.
        environ: Process environment; defaults to ``os.environ``.
        load: Optional module loading function, see :class:`ModuleLoader`.
        console: Output sink.
    """

    def __init__(
        self,
        manifest: Union[AppManifest, Mapping[str, Any]],
        routes: Union[RouteTable, Sequence[Mapping[str, Any]]],
        app_dir: Union[str, Path],
        *,
        environ: Optional[Mapping[str, str]] = None,
        load: Optional[LoadFunction] = None,
        console: Optional[Console] = None,
    ) -> None:
        self.manifest = manifest if isinstance(manifest, AppManifest) else AppManifest.from_dict(manifest)
        self.table = routes if isinstance(routes, RouteTable) else RouteTable.from_dicts(routes)
        self.app_dir = Path(app_dir)
        self.environ: Dict[str, str] = dict(os.environ if environ is None else environ)
        self.loader = ModuleLoader(self.app_dir, load)
        self.console = console or Console()

        self.states: List[DispatchState] = []
        self.exit_code = 0
        self.handler_calls = 0
        self._command_error: Optional[BaseException] = None
        self._partial_data: Mapping[str, Any] = {}
        self._params_cache: Dict[str, ParamsDefinition] = {}

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @property
    def verbose(self) -> bool:
        value = self.environ.get(self.manifest.verbose_env_var, "")
        return value.strip().lower() in _TRUTHY

    def _enter(self, state: DispatchState) -> None:
        self.states.append(state)
        logger.debug("state -> %s", state.value)

    async def _params_definition(
        self, route: CommandRoute, ref: ModuleRef, ctx: ExecutionContext
    ) -> ParamsDefinition:
        export = await self.loader.export(ref)
        definition = ParamsDefinition.from_export(await materialize(export, ref, ctx))
        self._params_cache[route.path] = definition
        return definition

    async def _handler(self, route: CommandRoute) -> Any:
        export = await self.loader.export(route.command)
        try:
            return CommandDefinition.from_export(export).handler
        except TypeError as exc:
            raise ModuleLoadError(str(self.loader.resolve(route.command.path)), str(exc)) from exc

    def _help_text(self, route: CommandRoute, help_def: Optional[HelpDefinition] = None) -> str:
        return render_command_help(
            self.manifest.cli_name,
            route,
            help_def or merge_help(route),
            self._params_cache.get(route.path),
        )

    def _show_help_callback(self, route: CommandRoute):
        def show_help() -> None:
            self.console.out(self._help_text(route))

        return show_help

    # ------------------------------------------------------------------
    # INIT short-circuits
    # ------------------------------------------------------------------

    async def _print_version(self, base: BaseContext) -> None:
        version = self.manifest.version
        metadata: Mapping[str, Any] = self.manifest.version_metadata
        ref = self.manifest.version_module
        if version is None and ref is not None:
            value = await materialize(await self.loader.export(ref), ref, base)
            if isinstance(value, str):
                version = value
            elif isinstance(value, Mapping):
                version = value.get("version")
                metadata = dict(metadata, **(value.get("metadata") or {}))
        self.console.out(render_version(version, metadata))

    async def _print_help(self, match: Optional[RouteMatch], parsed: ParsedArgv) -> None:
        if match is None or match.consumed == 0:
            self.console.out(render_global_help(self.manifest, self.table))
            return

        route = match.route
        ctx = ExecutionContext(
            command=parsed.positional[: match.consumed],
            args=match.remaining,
            options=parsed.options,
            params=match.params,
            env=EnvironmentSnapshot(raw=self.environ),
        )
        loaded: Optional[HelpDefinition] = None
        if route.help is not None and not route.help_is_static:
            export = await self.loader.export(route.help)
            loaded = HelpDefinition.from_export(await materialize(export, route.help, ctx))
        if route.params is not None:
            try:
                await self._params_definition(route, route.params, ctx)
            except Exception as exc:
                logger.warning("Could not load params for help of %r: %s", route.path, exc)
        self.console.out(self._help_text(route, merge_help(route, loaded)))

    # ------------------------------------------------------------------
    # stages
    # ------------------------------------------------------------------

    async def _resolve_env(self, snapshot: EnvironmentSnapshot, argv: Sequence[str]) -> EnvironmentSnapshot:
        ref = self.manifest.env
        if ref is None:
            return snapshot
        export = await self.loader.export(ref)
        schema = await materialize(export, ref, BaseContext(env=snapshot, argv=tuple(argv)))
        result = resolve_environment(schema, snapshot.raw)
        if not result.success:
            raise EnvironmentValidationError(
                "Environment validation failed",
                result.issues,
                context={"fields": [issue.field for issue in result.issues]},
            )
        return snapshot.with_validated(result.data)

    def _command_stage(self, route: CommandRoute):
        async def run_command(ctx: ExecutionContext) -> None:
            try:
                if route.params is not None:
                    self._enter(DispatchState.PARAM_VALIDATION)
                    definition = await self._params_definition(route, route.params, ctx)
                    # Dynamic path params are visible to mappings as options of lower priority.
                    options = {**ctx.params, **ctx.options}
                    result = validate_params(definition, ctx.args, options)
                    if not result.success:
                        self._partial_data = result.data
                        raise ParameterValidationError(
                            f"Invalid parameters for {route.display_path or self.manifest.cli_name}",
                            result.issues,
                            context={"command": route.path},
                        )
                    ctx = ctx.with_data(result.data)
                    self._partial_data = result.data

                self._enter(DispatchState.HANDLER_EXEC)
                handler = await self._handler(route)
                self.handler_calls += 1
                value = handler(ctx)
                if inspect.isawaitable(value):
                    value = await value
                if isinstance(value, int) and not isinstance(value, bool):
                    self.exit_code = value
            except Exception as exc:
                self._command_error = exc
                raise

        return run_command

    # ------------------------------------------------------------------
    # error routing
    # ------------------------------------------------------------------

    async def _load_error_handler(self, ref, level: str) -> Optional[ErrorHandler]:
        if ref is None:
            return None
        try:
            return await self.loader.export(ref)
        except ModuleLoadError as exc:
            logger.warning("%s error handler unavailable, falling through: %s", level.capitalize(), exc)
            return None

    async def _route_error(
        self,
        error: Exception,
        route: Optional[CommandRoute],
        ctx: Optional[ExecutionContext],
        env: EnvironmentSnapshot,
    ) -> int:
        local = None
        if route is not None and error is self._command_error:
            local = await self._load_error_handler(route.error, "local")
        global_handler = await self._load_error_handler(self.manifest.global_error, "global")
        hierarchy = ErrorHandlerHierarchy(
            local=local,
            global_handler=global_handler,
            console=self.console,
            verbose=self.verbose,
        )
        return await hierarchy.resolve(error, context=ctx, env=env, data=self._partial_data)

    # ------------------------------------------------------------------
    # entry point
    # ------------------------------------------------------------------

    async def dispatch(self, argv: Sequence[str]) -> int:
        self._enter(DispatchState.INIT)
        argv = list(argv)
        parsed = parse_argv(argv)
        env = EnvironmentSnapshot(raw=self.environ)
        match = self.table.match(parsed.positional)

        if parsed.wants_version or parsed.wants_help:
            try:
                if parsed.wants_version:
                    await self._print_version(BaseContext(env=env, argv=tuple(argv)))
                else:
                    await self._print_help(match, parsed)
            except Exception as exc:
                # Help and version failures start at the global level.
                self._enter(DispatchState.ERROR)
                logger.debug("Help or version failed: %s", exc)
                return await self._route_error(exc, None, None, env)
            self._enter(DispatchState.DONE)
            return 0

        route = match.route if match is not None else None
        ctx: Optional[ExecutionContext] = None
        try:
            if match is None:
                raise UnknownCommandError(parsed.positional)

            self._enter(DispatchState.ENV_RESOLVED)
            env = await self._resolve_env(env, argv)
            ctx = ExecutionContext(
                command=parsed.positional[: match.consumed],
                args=match.remaining,
                options=parsed.options,
                params=match.params,
                env=env,
                show_help=self._show_help_callback(match.route),
            )

            command_stage = self._command_stage(match.route)
            if self.manifest.middleware is not None:
                self._enter(DispatchState.MIDDLEWARE)
                export = await self.loader.export(self.manifest.middleware)
                chain = await MiddlewareChain.build(export, BaseContext(env=env, argv=tuple(argv)))
                await chain.run(ctx, command_stage)
            else:
                await command_stage(ctx)
        except Exception as exc:
            self._enter(DispatchState.ERROR)
            logger.debug("Dispatch failed: %s", exc)
            return await self._route_error(exc, route, ctx, env)

        self._enter(DispatchState.DONE)
        return self.exit_code


def run(
    manifest: Union[AppManifest, Mapping[str, Any]],
    routes: Union[RouteTable, Sequence[Mapping[str, Any]]],
    app_dir: Union[str, Path],
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    *,
    load: Optional[LoadFunction] = None,
    console: Optional[Console] = None,
) -> int:
    """Run one dispatch and return the process exit code."""
    dispatcher = Dispatcher(manifest, routes, app_dir, environ=environ, load=load, console=console)
    return asyncio.run(dispatcher.dispatch(sys.argv[1:] if argv is None else argv))


__all__ = ["DispatchState", "Dispatcher", "run"]
