"""Bounded polling of long-running provider operations.

Wraps tenacity so every poll loop in the package has an explicit attempt cap
and a fixed interval, both taken from configuration.

Example:
    from autogrow.polling import Pending, PollPolicy, poll

    def _check() -> str:
        state = describe()
        if state == "modifying":
            raise Pending(state)
        return state

    final = poll(_check, PollPolicy(max_attempts=60, interval=5), what="volume modification")
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from autogrow.constants import MODIFICATION_POLL_ATTEMPTS, MODIFICATION_POLL_INTERVAL
from autogrow.exceptions import PollTimeout


class Pending(Exception):
    """Operation not terminal yet - poll again."""


@dataclass(frozen=True, slots=True)
class PollPolicy:
    """Attempt cap and fixed delay between attempts.

    Attributes:
        max_attempts: Total number of checks, including the first one.
        interval: Seconds to wait between checks.
    """

    max_attempts: int = MODIFICATION_POLL_ATTEMPTS
    interval: float = MODIFICATION_POLL_INTERVAL

    def __post_init__(self) -> None:
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise ValueError(f"max_attempts must be an integer, got {self.max_attempts!r}")
        if isinstance(self.interval, bool) or not isinstance(self.interval, int | float):
            raise ValueError(f"interval must be a number, got {self.interval!r}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.interval < 0:
            raise ValueError(f"interval must not be negative, got {self.interval}")


def poll[T](
    check: Callable[[], T],
    policy: PollPolicy,
    *,
    what: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``check`` until it returns instead of raising ``Pending``.

    Any other exception from ``check`` propagates immediately. Running out
    of attempts raises ``PollTimeout``.
    """
    log = logger.bind(component="poll")

    def _before_sleep(state: RetryCallState) -> None:
        log.debug(
            "{what} still pending (attempt {n}/{total})",
            what=what, n=state.attempt_number, total=policy.max_attempts,
        )

    retrying = Retrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_fixed(policy.interval),
        retry=retry_if_exception_type(Pending),
        sleep=sleep,
        before_sleep=_before_sleep,
    )
    try:
        return retrying(check)
    except RetryError as e:
        raise PollTimeout(
            f"{what} did not reach a terminal state after {policy.max_attempts} attempts"
        ) from e
