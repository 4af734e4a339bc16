"""Byte relay between an open serial device and the process's streams."""

from __future__ import annotations

import logging
import queue
import sys
import threading
import time
from pathlib import Path
from typing import BinaryIO, Callable

import serial

from serialterm.core.errors import InputFileError, RelayError, RelayReadError, RelayWriteError
from serialterm.core.model import DEFAULT_SETTLE_S, SendReport, SessionConfig
from serialterm.transports.serial_port import PortWriter, SharedPort

READ_CHUNK_SIZE = 1000
# Expected whenever the short per-read timeout expires with nothing pending.
_READ_TIMEOUT_ERRORS = (TimeoutError, serial.SerialTimeoutException)
_IO_ERRORS = (serial.SerialException, OSError)
LOGGER = logging.getLogger(__name__)


def _binary(stream: object) -> BinaryIO:
    return getattr(stream, "buffer", stream)  # type: ignore[return-value]


class Relay:
    """Moves bytes between `port` and a pair of binary streams.

    `run` picks the mode once: file-send when the config names an input file,
    interactive otherwise. Interactive mode forwards input to the device on a
    worker thread while the calling thread copies device output to `stdout`.
    """

    def __init__(
        self,
        port: SharedPort,
        *,
        stdin: BinaryIO | None = None,
        stdout: BinaryIO | None = None,
        settle_s: float = DEFAULT_SETTLE_S,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.port = port
        self._stdin = stdin
        self._stdout = stdout
        self._settle_s = settle_s
        self._sleep = sleep
        self._stop = threading.Event()
        self._failures: queue.Queue[RelayError] = queue.Queue(maxsize=1)
        self._worker: threading.Thread | None = None

    @property
    def label(self) -> str:
        return self.port.name or "serial port"

    def run(self, config: SessionConfig) -> SendReport | None:
        if config.input_file is not None:
            return self.send_file(config.input_file)
        self.run_interactive()
        return None

    def stop(self) -> None:
        self._stop.set()

    def send_file(self, path: Path) -> SendReport:
        """Write the whole file to the device in one write, then let it settle."""
        try:
            payload = Path(path).read_bytes()
        except OSError as exc:
            raise InputFileError(f"Could not read input file {path}: {exc}") from exc

        with self.port.writer() as writer:
            try:
                writer.write(payload)
            except _IO_ERRORS as exc:
                raise RelayWriteError(f"Write to {self.label} failed: {exc}") from exc
            LOGGER.debug("Wrote %d bytes from %s, settling for %.3fs", len(payload), path, self._settle_s)
            self._sleep(self._settle_s)

        return SendReport(port_path=self.port.name, source=Path(path), byte_count=len(payload))

    def run_interactive(self) -> None:
        """Relay in both directions until stopped or a fatal I/O error occurs."""
        stdin = self._stdin if self._stdin is not None else _binary(sys.stdin)
        stdout = self._stdout if self._stdout is not None else _binary(sys.stdout)

        reader = self.port.reader()
        self._worker = threading.Thread(
            target=self._forward_input,
            args=(stdin, self.port.writer()),
            name=f"Relay[{self.label}]",
            daemon=True,
        )
        self._worker.start()
        try:
            while not self._stop.is_set():
                try:
                    data = reader.read(READ_CHUNK_SIZE)
                except _READ_TIMEOUT_ERRORS:
                    continue
                except _IO_ERRORS as exc:
                    raise RelayReadError(f"Read from {self.label} failed: {exc}") from exc
                if not data:
                    continue
                try:
                    stdout.write(data)
                    stdout.flush()
                except OSError as exc:
                    raise RelayWriteError(f"Write to output stream failed: {exc}") from exc
            self._raise_worker_failure()
        finally:
            reader.release()

    def _forward_input(self, stdin: BinaryIO, writer: PortWriter) -> None:
        try:
            while not self._stop.is_set():
                try:
                    byte = stdin.read(1)
                except OSError as exc:
                    self._fail(RelayReadError(f"Read from input stream failed: {exc}"))
                    return
                if not byte:
                    LOGGER.debug("Input stream closed; %s keeps relaying device output", self.label)
                    return
                try:
                    writer.write(byte)
                except _IO_ERRORS as exc:
                    self._fail(RelayWriteError(f"Write to {self.label} failed: {exc}"))
                    return
        finally:
            writer.release()

    def _fail(self, error: RelayError) -> None:
        LOGGER.debug("Input forwarding stopped: %s", error)
        try:
            self._failures.put_nowait(error)
        except queue.Full:
            pass
        self._stop.set()

    def _raise_worker_failure(self) -> None:
        try:
            error = self._failures.get_nowait()
        except queue.Empty:
            return
        raise error
