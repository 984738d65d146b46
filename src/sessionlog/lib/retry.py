"""Bounded retry for read-after-write races between hook processes.

Hooks for the same session run as separate processes, so a reader can
observe a file before its writer has finished. The fix is always the same:
try a few times with a short fixed delay, then fall back.
"""

import logging
import time
from collections.abc import Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry(
    fn: Callable[[], T],
    attempts: int,
    delay: float,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` until it returns a truthy value or attempts run out.

    Args:
        fn: Zero-argument callable to poll.
        attempts: Maximum number of calls (at least one call is always made).
        delay: Seconds to sleep between calls.
        sleep: Sleep function, injectable for tests.

    Returns:
        The first truthy result, or the result of the final attempt.
    """
    attempts = max(1, attempts)
    result = fn()
    for attempt in range(2, attempts + 1):
        if result:
            return result
        logger.debug(f"Attempt {attempt - 1}/{attempts} came back empty, retrying in {delay}s")
        sleep(delay)
        result = fn()
    return result
