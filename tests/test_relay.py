from __future__ import annotations

import io
import threading
import time
from pathlib import Path

import pytest
import serial

from serialterm.core.errors import InputFileError, RelayReadError, RelayWriteError
from serialterm.core.model import SessionConfig
from serialterm.core.relay import READ_CHUNK_SIZE, Relay
from serialterm.transports.serial_port import SharedPort


class ScriptedPort:
    """Serial stand-in whose reads follow a script of bytes and exceptions."""

    def __init__(self, reads: list[bytes | BaseException] | None = None) -> None:
        self.reads = list(reads or [])
        self.read_sizes: list[int] = []
        self.written: list[bytes] = []
        self.write_error: BaseException | None = None
        self.closed = False
        self.lock = threading.Lock()

    def read(self, size: int = 1) -> bytes:
        self.read_sizes.append(size)
        if not self.reads:
            time.sleep(0.001)
            return b""
        item = self.reads.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def write(self, data: bytes) -> int:
        if self.write_error is not None:
            raise self.write_error
        with self.lock:
            self.written.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


class WaitingPort(ScriptedPort):
    """Idles until `expected` bytes were written, then fails the read."""

    def __init__(self, expected: int) -> None:
        super().__init__()
        self.expected = expected
        self.deadline = time.monotonic() + 2.0

    def read(self, size: int = 1) -> bytes:
        with self.lock:
            done = len(self.written) >= self.expected
        if done or time.monotonic() > self.deadline:
            raise serial.SerialException("device disconnected")
        time.sleep(0.001)
        return b""


def test_send_file_writes_exact_bytes(tmp_path: Path) -> None:
    payload = bytes(range(10))
    data = tmp_path / "data.bin"
    data.write_bytes(payload)
    port = ScriptedPort()
    sleeps: list[float] = []
    relay = Relay(SharedPort(port, name="/dev/ttyUSB0"), sleep=sleeps.append)

    report = relay.send_file(data)

    assert port.written == [payload]
    assert report.byte_count == 10
    assert report.port_path == "/dev/ttyUSB0"
    assert sleeps == [0.5]
    assert port.closed


def test_run_selects_file_send_mode(tmp_path: Path) -> None:
    data = tmp_path / "data.bin"
    data.write_bytes(b"0123456789")
    port = ScriptedPort()
    relay = Relay(SharedPort(port), settle_s=0.0, sleep=lambda _: None)

    report = relay.run(SessionConfig(port_path="/dev/ttyUSB0", baud_rate=9600, input_file=data))

    assert report is not None
    assert b"".join(port.written) == b"0123456789"
    assert port.read_sizes == []


def test_send_file_missing_input(tmp_path: Path) -> None:
    port = ScriptedPort()
    relay = Relay(SharedPort(port), sleep=lambda _: None)

    with pytest.raises(InputFileError, match="missing.bin"):
        relay.send_file(tmp_path / "missing.bin")
    assert port.written == []


def test_send_file_write_failure(tmp_path: Path) -> None:
    data = tmp_path / "data.bin"
    data.write_bytes(b"abc")
    port = ScriptedPort()
    port.write_error = serial.SerialException("write failed: [Errno 5] Input/output error")
    relay = Relay(SharedPort(port, name="/dev/ttyUSB0"), sleep=lambda _: None)

    with pytest.raises(RelayWriteError, match="/dev/ttyUSB0"):
        relay.send_file(data)
    assert port.closed


def test_interactive_copies_device_bytes_in_order() -> None:
    port = ScriptedPort(
        [
            b"hel",
            b"",
            TimeoutError("read timed out"),
            serial.SerialTimeoutException("read timed out"),
            b"lo\n",
            serial.SerialException("device reports readiness to read but returned no data"),
        ]
    )
    stdout = io.BytesIO()
    relay = Relay(SharedPort(port, name="/dev/ttyACM0"), stdin=io.BytesIO(b""), stdout=stdout)

    with pytest.raises(RelayReadError, match="/dev/ttyACM0"):
        relay.run_interactive()

    assert stdout.getvalue() == b"hello\n"
    assert set(port.read_sizes) == {READ_CHUNK_SIZE}


def test_interactive_forwards_input_bytes() -> None:
    port = WaitingPort(expected=3)
    relay = Relay(SharedPort(port), stdin=io.BytesIO(b"abc"), stdout=io.BytesIO())

    with pytest.raises(RelayReadError):
        relay.run_interactive()

    assert port.written == [b"a", b"b", b"c"]


def test_input_write_failure_ends_session() -> None:
    port = ScriptedPort()
    port.write_error = serial.SerialException("write failed: [Errno 5] Input/output error")
    relay = Relay(SharedPort(port, name="/dev/ttyUSB0"), stdin=io.BytesIO(b"x"), stdout=io.BytesIO())

    with pytest.raises(RelayWriteError, match="Input/output error"):
        relay.run_interactive()


def test_input_eof_keeps_device_output_running() -> None:
    port = ScriptedPort([b"a", b"b", b"c"])
    stdout = io.BytesIO()
    shared = SharedPort(port)
    relay = Relay(shared, stdin=io.BytesIO(b""), stdout=stdout)

    original_read = port.read

    def read(size: int = 1) -> bytes:
        data = original_read(size)
        if not port.reads:
            relay.stop()
        return data

    port.read = read  # type: ignore[method-assign]

    relay.run_interactive()

    assert stdout.getvalue() == b"abc"
    assert relay._worker is not None
    relay._worker.join(timeout=1.0)
    assert shared.closed


def test_output_stream_failure_is_fatal() -> None:
    class BrokenStdout(io.BytesIO):
        def write(self, data: bytes) -> int:  # type: ignore[override]
            raise BrokenPipeError(32, "Broken pipe")

    port = ScriptedPort([b"data"])
    relay = Relay(SharedPort(port), stdin=io.BytesIO(b""), stdout=BrokenStdout())

    with pytest.raises(RelayWriteError, match="output stream"):
        relay.run_interactive()
