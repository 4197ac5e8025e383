import asyncio
import functools
import logging
import time
from typing import Awaitable, Callable, Dict, List, TypeVar

from exception import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def async_click(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return asyncio.run(func(*args, **kwargs))
    return wrapper


def retry(attempts: int, delay: float, func: Callable[[], T]) -> T:
    """
    Вызывает func до attempts раз с фиксированной паузой delay секунд.
    Без экспоненциального роста; после последней попытки пробрасывает ошибку.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except Exception as e:
            if attempt >= attempts:
                raise
            logger.warning("Attempt %d/%d failed: %s", attempt, attempts, e)
            time.sleep(delay)
    raise AssertionError("unreachable")


async def aretry(attempts: int, delay: float, func: Callable[[], Awaitable[T]]) -> T:
    """Асинхронный вариант retry()."""
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except Exception as e:
            if attempt >= attempts:
                raise
            logger.warning("Attempt %d/%d failed: %s", attempt, attempts, e)
            await asyncio.sleep(delay)
    raise AssertionError("unreachable")


def parse_key_values(items: List[str], what: str) -> Dict[str, str]:
    """
    Разбирает список строк вида NAME=VALUE (флаги --env / --label).
    Порядок сохраняется, повтор имени перезаписывает значение.
    """
    result: Dict[str, str] = {}
    for item in items or []:
        parts = item.split("=")
        if len(parts) != 2:
            raise ConfigurationError(f"expected 2 parts to {what} but got {len(parts)}: {item}")
        result[parts[0]] = parts[1]
    return result


def merge_maps(*maps: Dict[str, str]) -> Dict[str, str]:
    answer: Dict[str, str] = {}
    for m in maps:
        if m:
            answer.update(m)
    return answer
