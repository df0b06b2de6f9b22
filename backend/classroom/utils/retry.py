"""
Bounded retry and poll-until-ready helpers for slow generative calls.

Both helpers suspend with asyncio.sleep between attempts, so callers on the
event loop keep serving other work while they wait.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(base_seconds: float) -> Callable[[int], float]:
    """Delay after failed attempt n (1-based) is n * base_seconds."""
    return lambda attempt: base_seconds * attempt


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 3,
    backoff: Callable[[int], float] = linear_backoff(1.0),
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    label: str = "operation",
) -> T:
    """
    Run ``operation`` until it succeeds or ``attempts`` are used up.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        attempts: Maximum number of calls
        backoff: Maps the failed attempt number to a delay in seconds
        retry_on: Exception types that trigger another attempt
        label: Name used in log lines

    Returns:
        The first successful result

    Raises:
        The exception from the last attempt
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            if attempt == attempts:
                logger.error(f"{label} failed after {attempts} attempts: {e}")
                raise
            delay = backoff(attempt)
            logger.warning(
                f"{label} attempt {attempt}/{attempts} failed: {e}; retrying in {delay:.1f}s"
            )
            await asyncio.sleep(delay)

    raise RuntimeError("unreachable")


async def poll_until_ready(
    refresh: Callable[[T], Awaitable[T]],
    initial: T,
    is_ready: Callable[[T], bool],
    interval: float = 5.0,
    max_polls: Optional[int] = None,
    label: str = "job",
) -> T:
    """
    Re-fetch a long-running job until ``is_ready`` reports completion.

    Args:
        refresh: Coroutine returning the latest view of the job
        initial: Job handle returned when the job was submitted
        is_ready: Completion predicate
        interval: Seconds to wait before each refresh
        max_polls: Give up after this many refreshes (None = no limit)
        label: Name used in log lines

    Raises:
        TimeoutError: if max_polls refreshes pass without completion
    """
    job = initial
    polls = 0
    while not is_ready(job):
        if max_polls is not None and polls >= max_polls:
            raise TimeoutError(f"{label} not ready after {polls} polls")
        await asyncio.sleep(interval)
        job = await refresh(job)
        polls += 1
        logger.debug(f"{label} poll {polls}: ready={is_ready(job)}")
    return job
