"""
Retry helper with exponential backoff for async callables.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args,
    retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    **kwargs,
) -> T:
    """Await ``func(*args, **kwargs)``, retrying failures with exponential backoff.

    ``retries`` counts the attempts made after the first one. The delay before
    attempt ``n`` is ``min(base_delay * 2 ** (n - 1), max_delay)``. Exceptions not
    listed in ``retry_on`` propagate immediately; the last exception propagates
    once attempts are exhausted.
    """
    attempt = 0
    while True:
        try:
            return await func(*args, **kwargs)
        except retry_on as e:
            if attempt >= retries:
                logger.error(
                    f"{getattr(func, '__name__', 'call')} failed after {attempt + 1} attempts: {e}"
                )
                raise
            delay = min(base_delay * (2 ** attempt), max_delay)
            attempt += 1
            logger.warning(
                f"{getattr(func, '__name__', 'call')} failed (attempt {attempt}/{retries + 1}): {e}. "
                f"Retrying in {delay}s"
            )
            await asyncio.sleep(delay)
