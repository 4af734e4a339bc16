"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from serialterm import __version__
from serialterm.core.errors import OpenError, SerialtermError
from serialterm.core.service import TerminalService
from serialterm.core.settings import build_session_config, load_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

app = typer.Typer(help="Minimal serial port terminal", add_completion=False)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        force=True,
    )


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"serialterm {__version__}")
        raise typer.Exit()


@app.command()
def main(
    port: str = typer.Argument(..., help="The device path to a serial port"),
    baud: int | None = typer.Option(
        None, "--baud", "-b", min=1, help="The baud rate to connect at [default: 115200]"
    ),
    wait: bool = typer.Option(
        False, "--wait", "-w", help="Wait up to 10 seconds for the serial port to appear"
    ),
    input_file: Path | None = typer.Option(
        None, "--input-file", "-i", help="Send this file to the port once and exit"
    ),
    config: Path | None = typer.Option(None, "--config", help="Settings file to use"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log diagnostics to stderr"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """Relay bytes between PORT and stdin/stdout, or send a file with --input-file."""
    configure_logging(verbose)
    try:
        settings = load_settings(config)
    except SerialtermError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    session = build_session_config(
        settings,
        port,
        baud_rate=baud,
        wait_for_device=wait,
        input_file=input_file,
    )
    service = TerminalService()

    try:
        device = service.open_port(session)
    except OpenError as exc:
        typer.echo(f'Error: Failed to open "{session.port_path}": {exc}', err=True)
        raise typer.Exit(code=1) from None

    try:
        if session.input_file is None:
            typer.echo(
                f"Receiving data on {session.port_path} at {session.baud_rate} baud:", err=True
            )
        report = service.run_session(device, session)
    except SerialtermError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    except KeyboardInterrupt:
        service.stop()
        raise typer.Exit(code=130) from None

    if report is not None:
        typer.echo(
            f"Sent {report.byte_count} bytes from {report.source} to {report.port_path}", err=True
        )


def run() -> None:
    app()


if __name__ == "__main__":
    run()
