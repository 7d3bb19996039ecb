"""Typer application and CLI entry point for cachegate.

The CLI is a host for the caching core: it resolves configuration, runs the
install and activate phases, sends requests through the interception layer
and delivers control-plane messages.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
:class:`~cachegate.exceptions.CachegateError` exits with its own exit code;
any other exception is written to a crash log under the data directory.

See Also:
    :mod:`cachegate.config`: Configuration resolution.
    :mod:`cachegate.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from cachegate import __version__
from cachegate.commands.cache import (
    activate_command,
    fetch_command,
    install_command,
    message_command,
    versions_command,
)
from cachegate.commands.config import config_app
from cachegate.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="cachegate",
    help="Versioned request-interception cache with offline-first strategies.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("install")(install_command)
app.command("activate")(activate_command)
app.command("fetch")(fetch_command)
app.command("message")(message_command)
app.command("versions")(versions_command)
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"cachegate {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    cache_version: Optional[str] = typer.Option(
        None, "--cache-version", "-c", help="Cache version to operate on."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Origin for relative URLs."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~cachegate.output.OutputManager` from
    CLI flags and stores the configuration overrides in ``ctx.obj``.  Cache
    commands switch to the configured ``output.format`` once configuration
    is resolved, unless ``--json`` or ``--plain`` was given.
    """
    from cachegate.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(
        OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    )

    ctx.ensure_object(dict)
    ctx.obj["cache_version"] = cache_version
    ctx.obj["base_url"] = base_url
    ctx.obj["format"] = None if fmt == OutputFormat.AUTO else fmt.value
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from cachegate.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``cachegate`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from cachegate.exceptions import CachegateError
        from cachegate.output import error

        if isinstance(exc, CachegateError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
