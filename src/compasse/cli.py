#!/usr/bin/env python
"""Compasse CLI - Command line interface for Compasse servers.

Commands:
    compasse serve <app>     Start an MCP SSE server
    compasse methods <app>   List registered tools, prompts and methods
    compasse version         Show version information

``<app>`` is ``module:attribute`` or ``path/to/file.py:attribute`` and names a
``CompasseServer`` instance or a zero-argument factory returning one. The
attribute defaults to ``server``.
"""

import importlib
import importlib.util
import json
import sys
from pathlib import Path

import click

from compasse.server import CompasseServer


def load_server(app_path: str) -> CompasseServer:
    """Import a CompasseServer from ``module:attribute``.

    Raises:
        click.ClickException: If the target cannot be imported or is not a server
    """
    module_name, _, attr = app_path.partition(":")
    attr = attr or "server"

    if module_name.endswith(".py"):
        file_path = Path(module_name).resolve()
        if not file_path.is_file():
            raise click.ClickException(f"File not found: {module_name}")
        spec = importlib.util.spec_from_file_location(file_path.stem, file_path)
        if spec is None or spec.loader is None:
            raise click.ClickException(f"Cannot load {module_name}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[file_path.stem] = module
        spec.loader.exec_module(module)
    else:
        # Allow importing modules from the current directory
        if str(Path.cwd()) not in sys.path:
            sys.path.insert(0, str(Path.cwd()))
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise click.ClickException(f"Cannot import '{module_name}': {e}") from e

    try:
        target = getattr(module, attr)
    except AttributeError as e:
        raise click.ClickException(f"'{module_name}' has no attribute '{attr}'") from e

    if not isinstance(target, CompasseServer) and callable(target):
        target = target()

    if not isinstance(target, CompasseServer):
        raise click.ClickException(f"'{app_path}' is not a CompasseServer")

    return target


@click.group()
@click.version_option(version="0.1.0", prog_name="compasse")
def cli() -> None:
    """Compasse - MCP over Server-Sent Events."""
    pass


@cli.command()
@click.argument("app")
@click.option("--host", default=None, help="Host to bind to (default: from settings)")
@click.option("--port", "-p", type=int, default=None, help="Port to bind to (default: from settings)")
def serve(app: str, host: str | None, port: int | None) -> None:
    """Start the MCP SSE server for APP.

    Examples:

        compasse serve examples/fruit_server.py

        compasse serve myapp.mcp:create_server --port 9000
    """
    server = load_server(app)

    click.echo(click.style("Compasse Server", fg="cyan", bold=True))
    click.echo(f"Tools: {len(server.registry.tools)}  Prompts: {len(server.registry.prompts)}")
    click.echo(f"Endpoint: {server.settings.mount_path}")
    click.echo()

    try:
        server.run(host=host, port=port)
    except KeyboardInterrupt:
        click.echo("\nServer stopped.")


@cli.command("methods")
@click.argument("app")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def list_methods(app: str, as_json: bool) -> None:
    """List the handlers registered by APP."""
    server = load_server(app)
    registry = server.registry

    listing = {
        "tools": [d.to_tool_format() for d in registry.tools],
        "prompts": [d.to_prompt_format() for d in registry.prompts],
        "methods": [{"name": d.name, "description": d.description} for d in registry.methods],
    }

    if as_json:
        click.echo(json.dumps(listing, indent=2))
        return

    if not len(registry):
        click.echo("No handlers registered.")
        return

    for section, entries in listing.items():
        if not entries:
            continue
        click.echo(click.style(f"{section.capitalize()}:", fg="cyan", bold=True))
        for entry in entries:
            click.echo(f"  {entry['name']:<24} {entry['description']}")


@cli.command()
def version() -> None:
    """Show version information."""
    click.echo("Compasse v0.1.0")
    click.echo("Model Context Protocol server over Server-Sent Events")


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
