"""Serial port transport built on pyserial."""

from __future__ import annotations

import errno
import logging
import threading

import serial

from serialterm.core.model import ErrorClass, Failed, OpenAttempt, Opened, SessionConfig
from serialterm.transports.base import PortHandle

_ABSENT_ERRNOS = frozenset({errno.ENOENT, errno.ENODEV, errno.ENXIO})
_ABSENT_MARKERS = ("filenotfounderror", "no such file or directory", "cannot find the file")
LOGGER = logging.getLogger(__name__)


def classify_open_error(exc: BaseException) -> ErrorClass:
    """Decide whether an open failure is worth retrying."""
    if isinstance(exc, FileNotFoundError):
        return ErrorClass.DEVICE_ABSENT
    if isinstance(exc, OSError) and exc.errno in _ABSENT_ERRNOS:
        return ErrorClass.DEVICE_ABSENT
    if isinstance(exc, serial.SerialException):
        # pyserial on Windows folds the OS error into the message text.
        lowered = str(exc).lower()
        if any(marker in lowered for marker in _ABSENT_MARKERS):
            return ErrorClass.DEVICE_ABSENT
    return ErrorClass.FATAL


def open_port(config: SessionConfig) -> OpenAttempt:
    """Make exactly one attempt to open `config.port_path`."""
    try:
        port = serial.Serial(
            config.port_path,
            config.baud_rate,
            timeout=config.read_timeout_s,
            exclusive=True,
        )
    except (serial.SerialException, OSError, ValueError) as exc:
        error_class = classify_open_error(exc)
        LOGGER.debug("Open attempt on %s failed (%s): %s", config.port_path, error_class.value, exc)
        return Failed(error_class=error_class, message=str(exc))
    LOGGER.debug("Opened %s at %d baud", config.port_path, config.baud_rate)
    return Opened(handle=SharedPort(port, name=config.port_path))


class SharedPort:
    """One open device shared by a read capability and a write capability.

    The underlying port is closed when the last capability handed out by
    `reader()`/`writer()` is released.
    """

    def __init__(self, port: PortHandle, *, name: str = "") -> None:
        self.name = name
        self._port = port
        self._refs = 0
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def reader(self) -> PortReader:
        self._acquire()
        return PortReader(self)

    def writer(self) -> PortWriter:
        self._acquire()
        return PortWriter(self)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        LOGGER.debug("Closing %s", self.name or "serial port")
        self._port.close()

    def _acquire(self) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("Serial port is closed")
            self._refs += 1

    def _release(self) -> None:
        with self._lock:
            self._refs -= 1
            last = self._refs == 0
        if last:
            self.close()


class _Capability:
    def __init__(self, shared: SharedPort) -> None:
        self._shared = shared
        self._released = False

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._shared._release()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


class PortReader(_Capability):
    def read(self, size: int) -> bytes:
        return self._shared._port.read(size)


class PortWriter(_Capability):
    def write(self, data: bytes) -> None:
        port = self._shared._port
        written = port.write(data)
        if written is not None and written != len(data):
            raise serial.SerialTimeoutException(
                f"Short write: {written} of {len(data)} bytes"
            )
        port.flush()
