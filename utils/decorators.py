import asyncio
import functools
import logging
from typing import Tuple, Type

logger = logging.getLogger(__name__)

def retry_on_exception(
    retries: int = 3,
    delay: float = 2,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,)
):
    """Повторяет async-функцию при исключении; после последней попытки пробрасывает его"""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            attempts = max(1, retries)
            for attempt in range(1, attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    logger.warning(f"Попытка {attempt}/{attempts} {func.__name__}: {e}")
                    if attempt == attempts:
                        raise
                    if delay:
                        await asyncio.sleep(delay)
        return wrapper
    return decorator
