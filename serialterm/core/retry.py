"""Connection-establishment policy wrapped around a single-attempt port opener."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from serialterm.core.errors import DeviceAbsentError, FatalOpenError, RetryExhaustedError
from serialterm.core.model import ErrorClass, Failed, Opened, RetryState, SessionConfig
from serialterm.transports.base import PortOpener

LOGGER = logging.getLogger(__name__)


def _raise_for(outcome: Failed) -> None:
    if outcome.error_class is ErrorClass.DEVICE_ABSENT:
        raise DeviceAbsentError(outcome.message)
    raise FatalOpenError(outcome.message)


def _format_seconds(seconds: float) -> str:
    return f"{seconds:g}"


class RetryCoordinator:
    """Polls a port opener until it succeeds, fails fatally, or the window closes.

    With `wait_for_device` unset a single attempt is made. Otherwise the
    coordinator walks ATTEMPTING -> WAITING -> ATTEMPTING ... and ends in
    SUCCEEDED, FAILED_FATAL or TIMED_OUT. Only a DEVICE_ABSENT outcome ever
    leads to WAITING.
    """

    def __init__(
        self,
        opener: PortOpener,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._opener = opener
        self._sleep = sleep
        self._clock = clock
        self.state = RetryState.ATTEMPTING
        self.attempts = 0

    def open(self, config: SessionConfig) -> Any:
        self.state = RetryState.ATTEMPTING
        self.attempts = 0
        if not config.wait_for_device:
            return self._open_once(config)
        return self._open_waiting(config)

    def _attempt(self, config: SessionConfig) -> Opened | Failed:
        self.attempts += 1
        return self._opener(config)

    def _open_once(self, config: SessionConfig) -> Any:
        outcome = self._attempt(config)
        if isinstance(outcome, Opened):
            self._transition(RetryState.SUCCEEDED)
            return outcome.handle
        # Without waiting, an absent device ends the attempt as well.
        self._transition(RetryState.FAILED_FATAL)
        _raise_for(outcome)

    def _open_waiting(self, config: SessionConfig) -> Any:
        deadline = self._clock() + config.wait_timeout_s
        while True:
            outcome = self._attempt(config)
            if isinstance(outcome, Opened):
                self._transition(RetryState.SUCCEEDED)
                return outcome.handle
            if outcome.error_class is ErrorClass.FATAL:
                self._transition(RetryState.FAILED_FATAL)
                raise FatalOpenError(outcome.message)
            if self._clock() + config.wait_interval_s > deadline:
                self._transition(RetryState.TIMED_OUT)
                raise RetryExhaustedError(
                    f"Failed to open device after {_format_seconds(config.wait_timeout_s)} seconds"
                )
            self._transition(RetryState.WAITING)
            self._sleep(config.wait_interval_s)
            self._transition(RetryState.ATTEMPTING)

    def _transition(self, state: RetryState) -> None:
        LOGGER.debug("Retry state %s -> %s (attempt %d)", self.state.value, state.value, self.attempts)
        self.state = state


def open_with_policy(
    config: SessionConfig,
    opener: PortOpener,
    *,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Any:
    return RetryCoordinator(opener, sleep=sleep, clock=clock).open(config)
