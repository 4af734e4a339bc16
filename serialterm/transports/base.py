"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol

from serialterm.core.model import OpenAttempt, SessionConfig


class PortHandle(Protocol):
    def read(self, size: int = 1) -> bytes:
        """Read up to `size` bytes, returning early when the read timeout expires."""

    def write(self, data: bytes) -> int | None:
        """Write bytes to the device."""

    def flush(self) -> None:
        """Block until written bytes have left the output buffer."""

    def close(self) -> None:
        """Release the device."""


class PortOpener(Protocol):
    def __call__(self, config: SessionConfig) -> OpenAttempt:
        """Make a single attempt to open the configured device."""
