"""Command-line interface for mdrules."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
import time
from pathlib import Path

import click

from mdrules import __version__
from mdrules.config import (
    ProjectConfig,
    apply_env_overrides,
    find_project_root,
    get_config_value,
    load_config,
    save_config,
    set_config_value,
)
from mdrules.exceptions import MdRulesError
from mdrules.ui.console import Console

console = Console()

LOG_LEVELS = ["silent", "debug", "info", "warning", "error"]
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(level: str) -> None:
    """Send log records to stderr; stdout is reserved for output and MCP."""
    if level == "silent":
        logging.disable(logging.CRITICAL)
        return
    logging.disable(logging.NOTSET)
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        force=True,
    )


def _get_project_root(path: str | None = None) -> Path:
    """Find the project root or error."""
    path = path or os.environ.get("PROJECT_ROOT") or None
    if path:
        root = Path(path).resolve()
        if not root.is_dir():
            console.error(f"Path does not exist: {path}")
            sys.exit(1)
        return root

    root = find_project_root()
    if root is None:
        console.error(
            "No mdrules project found. Run 'mdrules init' first, "
            "or specify a path with --path."
        )
        sys.exit(1)
    return root


def _load_project(ctx: click.Context, path: str | None) -> tuple[Path, ProjectConfig]:
    """Resolve the root, load its config and set up logging."""
    root = _get_project_root(path)
    try:
        config = apply_env_overrides(load_config(root))
    except MdRulesError as e:
        console.error(str(e))
        sys.exit(1)

    _configure_logging(ctx.obj.get("log_level") or config.log_level)
    return root, config


def _build(root: Path, config: ProjectConfig):
    from mdrules.graph.builder import build_index

    return build_index(root, config)


@click.group()
@click.version_option(version=__version__, prog_name="mdrules")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS),
    default=None,
    help="Log verbosity on stderr (default: from config, 'info').",
)
@click.pass_context
def main(ctx: click.Context, log_level: str | None):
    """mdrules - Markdown docs and rules as context for AI agents."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.pass_context
def init(ctx: click.Context, path: str | None):
    """Initialize mdrules for a repository and index its markdown docs."""
    root = Path(path or ".").resolve()
    if not root.is_dir():
        console.error(f"Path does not exist: {root}")
        sys.exit(1)

    console.banner()
    console.info(f"Initializing mdrules for: {root}")

    try:
        config = load_config(root)
    except MdRulesError as e:
        console.error(str(e))
        sys.exit(1)
    config.name = root.name
    config.root_path = str(root)

    save_config(root, config)
    console.success("Configuration saved to .mdrules/config.json")

    _configure_logging(ctx.obj.get("log_level") or config.log_level)
    _do_index(root, apply_env_overrides(config))


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.pass_context
def index(ctx: click.Context, path: str | None):
    """Build the document index and show statistics."""
    root, config = _load_project(ctx, path)
    _do_index(root, config)


def _do_index(root: Path, config: ProjectConfig):
    """Index the markdown docs and print statistics."""
    console.info("Scanning and parsing markdown files...")
    start_time = time.time()

    with console.console.status("Indexing..."):
        doc_index = _build(root, config)

    elapsed = time.time() - start_time
    stats = doc_index.stats()

    console.success(f"Indexed {len(doc_index)} files in {elapsed:.1f}s")
    console.show_stats(stats)
    if stats.get("errors"):
        console.warning(f"{stats['errors']} file(s) could not be loaded, run with --log-level error")


# =========================================================================
# Context Assembly
# =========================================================================

@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option(
    "--attach", "-a", multiple=True,
    help="File the user has open, relative to the root (can specify multiple).",
)
@click.option(
    "--agent", "-g", multiple=True,
    help="Doc selected by the agent, by description or path (can specify multiple).",
)
@click.option(
    "--hoist/--no-hoist", default=None,
    help="Place related docs before (default) or after the doc that links them.",
)
@click.option("--summary", is_flag=True, help="Show what was included instead of the text.")
@click.pass_context
def context(
    ctx: click.Context, path: str | None, attach: tuple[str, ...],
    agent: tuple[str, ...], hoist: bool | None, summary: bool,
):
    """Assemble the docs that apply to a request.

    Examples:

        mdrules context --attach src/main.ts

        mdrules context -a src/db/user.ts -g "Database conventions" --summary

        mdrules context --no-hoist
    """
    root, config = _load_project(ctx, path)

    from mdrules.context.engine import ContextAssembler
    from mdrules.context.formatter import ContextFormatter

    doc_index = _build(root, config)
    assembler = ContextAssembler(
        doc_index, hoist=config.context.hoist if hoist is None else hoist
    )

    try:
        package = assembler.assemble_package(list(attach), list(agent))
    except MdRulesError as e:
        console.error(str(e))
        sys.exit(1)

    formatter = ContextFormatter(root, doc_index)
    if summary:
        console.show_package(package, formatter.relative)
        return

    if not package.items:
        console.warning("No docs apply to this request.")
        return

    # Rendered text contains brackets that rich would treat as markup
    click.echo(formatter.format_context(package.items))


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.pass_context
def docs(ctx: click.Context, path: str | None):
    """List the docs an agent can select by description."""
    root, config = _load_project(ctx, path)

    from mdrules.context.formatter import ContextFormatter

    doc_index = _build(root, config)
    console.show_docs(doc_index.agent_attachable(), ContextFormatter(root, doc_index).relative)


# =========================================================================
# MCP Server
# =========================================================================

@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--generate-config", type=click.Choice(["claude", "cursor"]),
              default=None, help="Generate MCP config for a client.")
@click.pass_context
def serve(ctx: click.Context, path: str | None, generate_config: str | None):
    """Start the MCP server over stdio.

    Exposes the project's markdown docs to Claude Code, Cursor and other
    MCP clients through the get_docs tool.

    Setup for Claude Code:

        mdrules serve --generate-config claude >> ~/.claude/mcp_servers.json

    Setup for Cursor:

        mdrules serve --generate-config cursor >> .cursor/mcp.json
    """
    from mdrules.mcp.server import MCPServer

    if generate_config:
        root_path = str(Path(path or ".").resolve())
        if generate_config == "claude":
            mcp_config = MCPServer.generate_claude_config(root_path)
        else:
            mcp_config = MCPServer.generate_cursor_config(root_path)
        click.echo(json.dumps(mcp_config, indent=2))
        return

    root, config = _load_project(ctx, path)
    server = MCPServer(root, config)
    asyncio.run(server.run_stdio())


# =========================================================================
# Config Management
# =========================================================================

@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage mdrules configuration."""
    root = _get_project_root(path)
    try:
        config = load_config(root)
    except MdRulesError as e:
        console.error(str(e))
        sys.exit(1)

    if action == "show":
        console.console.print_json(config.model_dump_json())
    elif action == "get":
        if not key:
            console.error("Usage: mdrules config get <key>")
            sys.exit(1)
        try:
            current = get_config_value(config, key)
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)
        console.console.print(f"{key} = {current}")
    elif action == "set":
        if not key or value is None:
            console.error("Usage: mdrules config set <key> <value>")
            sys.exit(1)
        # Try to parse as JSON for non-string values
        try:
            parsed_value = json.loads(value)
        except json.JSONDecodeError:
            parsed_value = value

        try:
            config = set_config_value(config, key, parsed_value)
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)
        except ValueError as e:
            console.error(f"Invalid value for {key}: {e}")
            sys.exit(1)
        save_config(root, config)
        console.success(f"Set {key} = {parsed_value}")


if __name__ == "__main__":
    main()
