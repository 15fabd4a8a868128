# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import logging
import time
from typing import Callable, TypeVar

import tenacity

LOG = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 5
DEFAULT_DELAY = 3


class PollTimeoutError(Exception):
    """Raised when a bounded poll never produced a value."""

    def __init__(self, attempts: int):
        super().__init__(f"No result after {attempts} attempts")
        self.attempts = attempts


def poll(
    probe: Callable[[], T | None],
    attempts: int = DEFAULT_ATTEMPTS,
    delay: float = DEFAULT_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call probe until it returns something other than None.

    Attempts are separated by a fixed delay, there is no pause after the last
    attempt. Exceptions raised by probe are not retried and propagate as is.

    :param probe: callable returning None while the value is not available
    :param attempts: maximum number of calls to probe
    :param delay: seconds to wait between two calls
    :param sleep: function used to wait
    :raises PollTimeoutError: when probe returned None on every attempt
    """
    retrying = tenacity.Retrying(
        stop=tenacity.stop_after_attempt(attempts),
        wait=tenacity.wait_fixed(delay),
        retry=tenacity.retry_if_result(lambda value: value is None),
        sleep=sleep,
        before_sleep=lambda state: LOG.debug(
            f"Attempt {state.attempt_number}/{attempts} returned nothing, "
            f"retrying in {delay} seconds"
        ),
    )
    try:
        return retrying(probe)
    except tenacity.RetryError as e:
        raise PollTimeoutError(attempts) from e
