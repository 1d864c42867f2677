# core/clock.py
"""
Абстракция времени.

Все ожидания бота (ретраи, интервал выборки цены, задержка между шансами,
пауза между циклами, опрос неактивного состояния) идут через Clock,
поэтому в тестах их можно подменить без реального ожидания.
"""
import asyncio
import time
from datetime import datetime


class Clock:
    """Реальные часы на asyncio."""

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now()

    def timestamp_ms(self) -> int:
        return int(time.time() * 1000)


# Общий экземпляр для боевого запуска
system_clock = Clock()
