#!/usr/bin/env python3
"""Command-line interface for the Pyright WebSocket Bridge."""

import logging
import os
import shlex
import shutil
import sys
from typing import Optional

import click
from pydantic import ValidationError

from pyrightbridge.config import DEFAULT_PATH, BridgeConfig
from pyrightbridge.service import BridgeServer

ENVVAR_PREFIX = "PYRIGHT_BRIDGE"
DEFAULT_FORMATTER = "ruff"


def resolve_formatter(ruff_path: Optional[str]) -> Optional[str]:
    """Resolve a bare formatter name against PATH.

    Without a value, `ruff` is looked up on PATH. An empty value turns local
    formatting off.

    Args:
        ruff_path: Formatter path or executable name given on the command line.

    Returns:
        The resolved path, the value unchanged when it cannot be resolved, or
        None when no formatter is used.
    """
    if ruff_path is None:
        return shutil.which(DEFAULT_FORMATTER)
    if not ruff_path:
        return None
    if os.sep in ruff_path:
        return ruff_path
    return shutil.which(ruff_path) or ruff_path


def build_config(**options) -> BridgeConfig:
    """Build the bridge configuration from command-line options.

    Raises:
        click.UsageError: If the configuration is invalid.
    """
    backend_command = options.pop("backend_command")
    options["backend_command"] = shlex.split(backend_command) if backend_command else None
    options["formatter_path"] = resolve_formatter(options["formatter_path"])
    if options["execution_root"]:
        options["execution_root"] = os.path.abspath(options["execution_root"])

    try:
        return BridgeConfig(**options)
    except ValidationError as e:
        errors = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise click.UsageError(f"Invalid configuration: {errors}") from e


@click.command()
@click.option("--port", type=int, required=True, envvar=f"{ENVVAR_PREFIX}_PORT",
              help="Port to listen on")
@click.option("--host", default="localhost", show_default=True, envvar=f"{ENVVAR_PREFIX}_HOST",
              help="Interface to listen on")
@click.option("--path", default=DEFAULT_PATH, show_default=True, envvar=f"{ENVVAR_PREFIX}_PATH",
              help="WebSocket path clients connect to")
@click.option("--bot-root", "execution_root", required=True, envvar=f"{ENVVAR_PREFIX}_BOT_ROOT",
              help="Execution root the language server treats as its workspace")
@click.option("--jesse-root", "reference_root", required=True, envvar=f"{ENVVAR_PREFIX}_JESSE_ROOT",
              help="Reference root substituted into the deployed pyrightconfig.json")
@click.option("--ruff-path", "formatter_path", default=None, envvar=f"{ENVVAR_PREFIX}_RUFF_PATH",
              help="Ruff executable used for formatting requests (defaults to ruff on PATH, empty to disable)")
@click.option("--formatter-timeout", type=float, default=30.0, show_default=True,
              envvar=f"{ENVVAR_PREFIX}_FORMATTER_TIMEOUT", help="Seconds to wait for the formatter")
@click.option("--backend-command", default=None, envvar=f"{ENVVAR_PREFIX}_BACKEND_COMMAND",
              help="Language server command (defaults to 'pyright-langserver --stdio')")
@click.option("--config-template", default=None, envvar=f"{ENVVAR_PREFIX}_CONFIG_TEMPLATE",
              help="pyrightconfig.json template deployed into the execution root on startup")
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
def main(debug: bool, **options) -> None:
    """Run the Pyright WebSocket Bridge."""
    # Configure logging
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    config = build_config(**options)
    if not config.formatter_path:
        logging.getLogger("pyrightbridge").warning(
            "No formatter configured, formatting requests will be forwarded to Pyright"
        )

    service = BridgeServer(config)
    try:
        service.start()
    except OSError as e:
        logging.getLogger("pyrightbridge").error(f"Failed to start bridge: {e}")
        sys.exit(1)

    click.echo(f"Pyright WS bridge running on {service.url}")
    click.echo("Press Ctrl+C to stop the service")
    try:
        service.serve_forever()
    except KeyboardInterrupt:
        click.echo("Stopping service...")
    finally:
        service.shutdown()
        click.echo("Service stopped")


if __name__ == "__main__":
    main()  # pylint: disable=no-value-for-parameter
