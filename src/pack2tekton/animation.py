import asyncio
import sys
import threading
import time
from typing import Any, Awaitable, Callable, Optional, TextIO, TypeVar

T = TypeVar("T")

FRAMES = "|/-\\"


class Spinner:
    """
    Индикатор долгой операции (клонирование, загрузка build pack'ов).

    Пишет в stderr, stdout остаётся под таблицу шагов и YAML.
    Вне терминала кадры не рисуются, только итоговая строка.
    """

    def __init__(self, text: str, interval: float = 0.1, stream: Optional[TextIO] = None) -> None:
        self.text = text
        self.interval = interval
        self.stream = stream or sys.stderr
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _loop(self) -> None:
        frame = 0
        while not self._stop.is_set():
            self.stream.write(f"\r{self.text} {FRAMES[frame % len(FRAMES)]}")
            self.stream.flush()
            frame += 1
            time.sleep(self.interval)
        self.stream.write("\r" + " " * (len(self.text) + 2) + "\r")

    def start(self) -> None:
        if self.stream.isatty():
            self._thread = threading.Thread(target=self._loop, daemon=True)
            self._thread.start()

    async def stop(self, success: bool) -> None:
        self._stop.set()
        if self._thread is not None:
            await asyncio.to_thread(self._thread.join)
        status = "Успешно" if success else "Ошибка"
        self.stream.write(f"{self.text} - {status}\n")
        self.stream.flush()


async def run(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    text: str = "Загрузка",
    interval: float = 0.1,
    **kwargs: Any,
) -> T:
    """Ждёт func(*args, **kwargs), пока крутится Spinner."""
    spinner = Spinner(text, interval)
    spinner.start()
    success = False
    try:
        result = await func(*args, **kwargs)
        success = True
        return result
    finally:
        await spinner.stop(success)
