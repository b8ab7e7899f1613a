"""Help and version text."""
from __future__ import annotations

from typing import Any, List, Mapping, Optional

from foldercli.core.routes import AppManifest, CommandRoute, RouteTable
from foldercli.runtime.definitions import HelpDefinition, ParamsDefinition


def merge_help(route: CommandRoute, loaded: Optional[HelpDefinition] = None) -> HelpDefinition:
    """Statically known help overlaid with values loaded at runtime."""
    static = HelpDefinition(
        name=route.name,
        description=route.description,
        examples=route.examples,
        aliases=route.aliases,
        additional_help=route.additional_help,
    )
    if loaded is None:
        return static
    return HelpDefinition(
        name=loaded.name or static.name,
        description=loaded.description or static.description,
        examples=loaded.examples or static.examples,
        aliases=loaded.aliases or static.aliases,
        additional_help=loaded.additional_help or static.additional_help,
    )


def _params_lines(params: ParamsDefinition) -> List[str]:
    lines: List[str] = []
    positional = sorted((m for m in params.mappings if m.arg_index is not None), key=lambda m: m.arg_index)
    named = [m for m in params.mappings if m.arg_index is None and m.option]

    if positional:
        lines += ["", "Arguments:"]
        for mapping in positional:
            alt = f" (or --{mapping.option})" if mapping.option else ""
            desc = f"  {mapping.description}" if mapping.description else ""
            lines.append(f"  [{mapping.arg_index + 1}] {mapping.field}{alt}{desc}")
    if named:
        lines += ["", "Options:"]
        for mapping in named:
            desc = mapping.description or mapping.field
            lines.append(f"  --{mapping.option}  {desc}")
    return lines


def render_command_help(
    cli_name: str,
    route: CommandRoute,
    help_def: Optional[HelpDefinition] = None,
    params: Optional[ParamsDefinition] = None,
) -> str:
    info = help_def or merge_help(route)
    usage = " ".join(part for part in (cli_name, route.display_path) if part)
    lines = [f"Usage: {usage} [options]"]
    if info.description:
        lines += ["", info.description]
    if params is not None:
        lines += _params_lines(params)
    if info.examples:
        lines += ["", "Examples:"]
        lines += [f"  {cli_name} {example}" for example in info.examples]
    if info.aliases:
        lines += ["", f"Aliases: {', '.join(info.aliases)}"]
    if info.additional_help:
        lines += ["", info.additional_help]
    return "\n".join(lines)


def render_global_help(manifest: AppManifest, table: RouteTable) -> str:
    header = manifest.cli_name + (f" {manifest.version}" if manifest.version else "")
    lines = [header]
    if manifest.description:
        lines.append(manifest.description)
    lines += ["", "Usage:", f"  {manifest.cli_name} <command> [options]", "", "Available commands:"]

    listed = [route for route in table if not route.is_root]
    if not listed:
        lines.append("  No commands available")
    width = max((len(route.display_path) for route in listed), default=0)
    for route in listed:
        summary = f"  {route.description}" if route.description else ""
        lines.append(f"  {route.display_path.ljust(width)}{summary}".rstrip())

    lines += ["", "Options:", "  --help, -h     Show help", "  --version, -v  Show version"]
    author = manifest.version_metadata.get("author")
    if author:
        lines += ["", f"Author: {author}"]
    return "\n".join(lines)


def render_version(version: Optional[str], metadata: Mapping[str, Any]) -> str:
    lines = [version or "unknown"]
    if metadata.get("author"):
        lines.append(f"Author: {metadata['author']}")
    return "\n".join(lines)


__all__ = ["merge_help", "render_command_help", "render_global_help", "render_version"]
