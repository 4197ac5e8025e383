"""
Выдача номеров сборок.

Аллокатор гарантирует монотонность и не более одной выдачи одновременно на ключ;
компилятор только вызывает его с ограниченным числом повторов.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Dict, Optional, Protocol

from exception import BuildNumberError
from utils import aretry

from ...models import GitRepository

logger = logging.getLogger(__name__)


class BuildNumberAllocator(Protocol):
    async def next_build_number(self, pipeline: str, timeout: Optional[float] = None) -> str:
        ...

    async def ready(self) -> bool:
        ...


def pipeline_id(git: GitRepository, branch: str, context: str = "") -> str:
    """Ключ аллокации: org/repo/branch[/context]."""
    answer = f"{git.organisation}/{git.name}/{branch}"
    if context:
        answer += f"/{context}"
    return answer


class MemoryBuildNumberIssuer:
    """Счётчики в памяти процесса; потокобезопасен."""

    def __init__(self, start: Optional[Dict[str, int]] = None) -> None:
        self._lock = threading.Lock()
        self._numbers: Dict[str, int] = dict(start or {})

    async def next_build_number(self, pipeline: str, timeout: Optional[float] = None) -> str:
        with self._lock:
            number = self._numbers.get(pipeline, 0) + 1
            self._numbers[pipeline] = number
        return str(number)

    async def ready(self) -> bool:
        return True


async def allocate_build_number(
    allocator: BuildNumberAllocator,
    pipeline: str,
    attempts: int,
    delay: float,
    timeout: Optional[float] = None,
) -> str:
    """
    Запрашивает номер с фиксированным числом попыток и паузой.
    Исчерпали попытки: BuildNumberError, компиляция прерывается.
    """

    async def attempt() -> str:
        number = await asyncio.wait_for(allocator.next_build_number(pipeline, timeout), timeout)
        if not str(number).strip().isdigit():
            raise BuildNumberError(pipeline, f"unexpected build number {number!r}")
        return str(number).strip()

    try:
        number = await aretry(attempts, delay, attempt)
    except BuildNumberError:
        raise
    except Exception as e:
        raise BuildNumberError(pipeline, str(e)) from e
    logger.info("generated build number %s for %s", number, pipeline)
    return number
