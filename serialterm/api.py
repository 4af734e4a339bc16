"""Stable public API for embedding serialterm in other tools.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO

from serialterm.core.errors import (
    DeviceAbsentError,
    FatalOpenError,
    InputFileError,
    OpenError,
    RelayError,
    RelayReadError,
    RelayWriteError,
    RetryExhaustedError,
    SerialtermError,
    SettingsError,
)
from serialterm.core.model import (
    DEFAULT_BAUD_RATE,
    ErrorClass,
    Failed,
    Opened,
    RetryState,
    SendReport,
    SessionConfig,
)
from serialterm.core.service import TerminalService
from serialterm.transports.base import PortOpener
from serialterm.transports.serial_port import SharedPort

__all__ = [
    "SerialtermError",
    "SettingsError",
    "OpenError",
    "DeviceAbsentError",
    "FatalOpenError",
    "RetryExhaustedError",
    "RelayError",
    "InputFileError",
    "RelayReadError",
    "RelayWriteError",
    "ErrorClass",
    "Failed",
    "Opened",
    "RetryState",
    "SendReport",
    "SessionConfig",
    "SharedPort",
    "Client",
]


class Client:
    """Public client for opening a serial device and relaying its bytes.

    A `Client` wraps the retry policy, port opening, and relay behind a small
    API. Pass `stdin`/`stdout` to relay against streams other than the
    process's own.
    """

    def __init__(
        self,
        *,
        opener: PortOpener | None = None,
        stdin: BinaryIO | None = None,
        stdout: BinaryIO | None = None,
    ) -> None:
        self._service = TerminalService(opener=opener, stdin=stdin, stdout=stdout)

    def open(self, config: SessionConfig) -> SharedPort:
        return self._service.open_port(config)

    def send_file(
        self,
        port_path: str,
        input_file: str | Path,
        *,
        baud_rate: int = DEFAULT_BAUD_RATE,
        wait_for_device: bool = False,
    ) -> SendReport:
        config = SessionConfig(
            port_path=port_path,
            baud_rate=baud_rate,
            wait_for_device=wait_for_device,
            input_file=Path(input_file),
        )
        report = self._service.run_session(self.open(config), config)
        assert report is not None
        return report

    def interact(self, config: SessionConfig) -> None:
        """Relay until `stop()` is called from another thread or an I/O error occurs."""
        self._service.run_session(self.open(config), config)

    def stop(self) -> None:
        self._service.stop()
