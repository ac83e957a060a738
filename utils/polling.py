"""
Fixed-interval polling with timeout.
"""
import time
from typing import Callable, Optional, TypeVar
from logger_config import get_logger
from utils.exceptions import ConfirmationTimeoutError

logger = get_logger(__name__)

T = TypeVar("T")


def poll_until(
    check: Callable[[], Optional[T]],
    interval: float,
    timeout: Optional[float],
    description: str = "condition",
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """
    Call ``check`` every ``interval`` seconds until it returns a value.

    Args:
        check: Callable returning None while the condition is unmet
        interval: Seconds to wait between attempts
        timeout: Seconds before giving up, or None to wait forever
        description: Human-readable name used in logs and errors
        sleep: Sleep function (injectable for tests)
        clock: Monotonic clock (injectable for tests)

    Returns:
        The first non-None value returned by ``check``

    Raises:
        ConfirmationTimeoutError: If ``timeout`` elapses first
    """
    deadline = None if timeout is None else clock() + timeout
    attempt = 0

    while True:
        attempt += 1
        result = check()
        if result is not None:
            logger.debug(f'{description} observed after {attempt} attempt(s)')
            return result

        if deadline is not None and clock() + interval > deadline:
            raise ConfirmationTimeoutError(
                f"Timed out after {timeout}s waiting for {description}",
                description=description,
                timeout=timeout,
            )

        sleep(interval)
