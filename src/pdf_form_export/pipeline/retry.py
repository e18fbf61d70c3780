# SPDX-License-Identifier: Apache-2.0
"""Bounded retry for file operations that can hit transient locks."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_file_operation(
    operation: Callable[[], T],
    max_retries: int = 3,
    delay: float = 0.1,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run a file operation, retrying on OSError with a fixed delay.

    Args:
        operation: Zero-argument callable performing the I/O.
        max_retries: Total number of attempts (at least 1).
        delay: Seconds to wait between attempts.
        sleep: Sleep function (injectable for tests).

    Returns:
        The operation's return value.

    Raises:
        OSError: The error from the final attempt.
    """
    attempts = max(1, int(max_retries))
    for attempt in range(1, attempts):
        try:
            return operation()
        except OSError as exc:
            logger.debug(
                "File operation failed (attempt %d/%d): %s; retrying in %.3fs",
                attempt,
                attempts,
                exc,
                delay,
            )
            sleep(delay)

    # Final attempt: let the error surface
    return operation()
