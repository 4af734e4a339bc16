"""Core data models shared by the opener, retry coordinator, relay, and CLI."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

DEFAULT_BAUD_RATE = 115_200
DEFAULT_READ_TIMEOUT_S = 0.01
DEFAULT_WAIT_INTERVAL_S = 0.1
DEFAULT_WAIT_TIMEOUT_S = 10.0
DEFAULT_SETTLE_S = 0.5


@dataclass(frozen=True)
class SessionConfig:
    port_path: str
    baud_rate: int = DEFAULT_BAUD_RATE
    wait_for_device: bool = False
    input_file: Path | None = None
    read_timeout_s: float = DEFAULT_READ_TIMEOUT_S
    wait_interval_s: float = DEFAULT_WAIT_INTERVAL_S
    wait_timeout_s: float = DEFAULT_WAIT_TIMEOUT_S
    settle_s: float = DEFAULT_SETTLE_S


class ErrorClass(Enum):
    DEVICE_ABSENT = "device-absent"
    FATAL = "fatal"


@dataclass(frozen=True)
class Opened:
    handle: Any


@dataclass(frozen=True)
class Failed:
    error_class: ErrorClass
    message: str

    def __str__(self) -> str:
        return self.message


OpenAttempt = Opened | Failed


class RetryState(Enum):
    ATTEMPTING = "attempting"
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    FAILED_FATAL = "failed-fatal"
    TIMED_OUT = "timed-out"


@dataclass(frozen=True)
class SendReport:
    port_path: str
    source: Path
    byte_count: int
