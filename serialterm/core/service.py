"""Service layer used by the CLI and the public API."""

from __future__ import annotations

import time
from typing import BinaryIO, Callable

from serialterm.core.model import SendReport, SessionConfig
from serialterm.core.relay import Relay
from serialterm.core.retry import RetryCoordinator
from serialterm.transports.base import PortOpener
from serialterm.transports.serial_port import SharedPort, open_port


class TerminalService:
    def __init__(
        self,
        *,
        opener: PortOpener | None = None,
        sleep: Callable[[float], None] = time.sleep,
        stdin: BinaryIO | None = None,
        stdout: BinaryIO | None = None,
    ) -> None:
        self.opener = opener or open_port
        self.sleep = sleep
        self.stdin = stdin
        self.stdout = stdout
        self.relay: Relay | None = None

    def open_port(self, config: SessionConfig) -> SharedPort:
        return RetryCoordinator(self.opener, sleep=self.sleep).open(config)

    def run_session(self, port: SharedPort, config: SessionConfig) -> SendReport | None:
        self.relay = Relay(
            port,
            stdin=self.stdin,
            stdout=self.stdout,
            settle_s=config.settle_s,
            sleep=self.sleep,
        )
        return self.relay.run(config)

    def stop(self) -> None:
        if self.relay is not None:
            self.relay.stop()
