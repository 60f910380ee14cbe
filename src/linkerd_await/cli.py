"""linkerd-await CLI entry point.

Wait for linkerd to become ready before running a program.

Examples:
  linkerd-await -- ./my-app --serve
  linkerd-await --timeout 2m --shutdown -- ./my-job
  LINKERD_AWAIT_DISABLED="no proxy" linkerd-await -v -- ./my-app
"""

from __future__ import annotations

import logging
from datetime import timedelta

import click
import typer

from . import __version__
from .config import load_config
from .constants import ENV_VERBOSE
from .duration import parse_duration
from .errors import AwaitError, ReadinessTimeout
from .gate import run

logger = logging.getLogger("linkerd_await")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

app = typer.Typer(add_completion=False)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _configure_logging(verbose: bool) -> None:
    """Send diagnostics to stderr; --verbose also shows debug output."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"linkerd-await {__version__}")
        raise typer.Exit()


def _given(ctx: typer.Context, name: str) -> bool:
    """Whether an option was set on the command line (or its envvar)."""
    source = ctx.get_parameter_source(name)
    return source not in (None, click.core.ParameterSource.DEFAULT)


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


# Everything after CMD belongs to CMD, even if it looks like one of our options
@app.command(context_settings={"allow_interspersed_args": False})
def main_command(
    ctx: typer.Context,
    port: int | None = typer.Option(
        None,
        "--port",
        "-p",
        min=1,
        max=65535,
        show_default="4191",
        help="The port of the local Linkerd proxy admin server",
    ),
    backoff: timedelta | None = typer.Option(
        None,
        "--backoff",
        "-b",
        parser=parse_duration,
        metavar="DURATION",
        show_default="1s",
        help="Time to wait after a failed readiness check",
    ),
    shutdown: bool = typer.Option(
        False,
        "--shutdown",
        "-S",
        help="Forks the program and triggers proxy shutdown on completion",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        envvar=ENV_VERBOSE,
        help="Causes linkerd-await to print an error message when disabled",
    ),
    timeout: timedelta | None = typer.Option(
        None,
        "--timeout",
        "-t",
        parser=parse_duration,
        metavar="DURATION",
        help="Causes linkerd-await to fail when the timeout elapses before the proxy becomes ready",
    ),
    timeout_fatal: bool = typer.Option(
        True,
        "--timeout-fatal/--no-timeout-fatal",
        help="Controls whether a readiness timeout failure prevents CMD from running",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Print version and exit.",
    ),
    cmd: str | None = typer.Argument(
        None, metavar="CMD", help="The command to run after linkerd is ready"
    ),
    args: list[str] | None = typer.Argument(
        None, metavar="ARGS", help="Arguments to pass to CMD if specified"
    ),
):
    """
    Wait for linkerd to become ready before running a program.
    """
    _configure_logging(verbose)

    if shutdown and not cmd:
        raise typer.BadParameter("requires CMD", param_hint="'--shutdown'")
    timeout_fatal_given = _given(ctx, "timeout_fatal")
    if timeout_fatal_given and not cmd:
        raise typer.BadParameter("requires CMD", param_hint="'--timeout-fatal'")

    try:
        config = load_config(
            port=port,
            backoff=backoff,
            timeout=timeout,
            timeout_fatal=timeout_fatal if timeout_fatal_given else None,
            shutdown=shutdown,
            verbose=verbose,
            cmd=cmd,
            args=args or (),
        )
        if config.log_level and not verbose:
            logging.getLogger().setLevel(config.log_level)
        elif config.verbose:
            logging.getLogger().setLevel(logging.DEBUG)

        code = run(config)
    except ReadinessTimeout as e:
        # Already reported when the deadline fired
        raise typer.Exit(e.exit_code)
    except AwaitError as e:
        logger.error("%s", e)
        raise typer.Exit(e.exit_code)

    raise typer.Exit(code)


# ---------------------------------------------------------------------------
# Main Entry Point
# ---------------------------------------------------------------------------


def main():
    """Main entry point for the CLI."""
    app(prog_name="linkerd-await")


if __name__ == "__main__":
    main()
