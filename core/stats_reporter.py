# core/stats_reporter.py
"""
Агрегация статистики и отправка статуса оператору.

Статус отправляется не чаще одного раза в update_interval. Принудительная
отправка происходит по командам /start, /stop и /status.
"""
import asyncio
from typing import Any, Dict, Optional

from core.clock import Clock, system_clock
from core.enums import StatsEventKind
from core.functions import format_percentage, format_points, format_timestamp
from core.interfaces import ReportingChannel
from core.logger import log_error, log_info, log_warning
from core.models import ReportingContext, Stats


class StatsReporter:
    """Единственный владелец Stats: все изменения статистики проходят через update()."""

    def __init__(self, context: ReportingContext, channel: Optional[ReportingChannel] = None,
                 clock: Clock = system_clock, update_interval: float = 5 * 60):
        self.context = context
        self.channel = channel
        self.clock = clock
        self.update_interval = update_interval
        self.stats = Stats()
        self.pushes_count = 0
        self._last_push = clock.monotonic()
        # одно статусное сообщение: отправка/редактирование не пересекаются
        self._push_lock = asyncio.Lock()

    def set_channel(self, channel: Optional[ReportingChannel]) -> None:
        self.channel = channel

    async def update(self, kind: StatsEventKind, payload: Optional[Dict[str, Any]] = None) -> None:
        """
        Обновляет статистику по событию и, если прошло достаточно времени, отправляет статус.

        Args:
            kind: тип события
            payload: данные события
                account_update: {"result": "Win"|"Lose", "balance_change": float}
                daily_task: {"completed": bool}
                upgrade: {"type": str}
                boost_use: {"type": str}
                error: {"type": str, "message": str, "account": ...}
        """
        payload = payload or {}

        if kind is StatsEventKind.ACCOUNT_UPDATE:
            change = abs(float(payload.get("balance_change", 0)))
            self.stats.total_accounts += 1
            if payload.get("result") == "Win":
                self.stats.wins_count += 1
                self.stats.total_profit += change
            else:
                self.stats.losses_count += 1
                self.stats.total_profit -= change
        elif kind is StatsEventKind.DAILY_TASK:
            if payload.get("completed"):
                self.stats.daily_tasks_completed += 1
        elif kind is StatsEventKind.UPGRADE:
            self.stats.upgrades_performed += 1
        elif kind is StatsEventKind.BOOST_USE:
            self.stats.boosts_used += 1
        elif kind is StatsEventKind.API_CALL:
            self.stats.remote_calls += 1
        elif kind is StatsEventKind.ERROR:
            self.stats.errors_count += 1
            log_error(payload.get("account", 0),
                      f"Ошибка {payload.get('type', 'unknown')}: {payload.get('message', '')}",
                      module_name="stats_reporter")

        self.stats.last_update_time = self.clock.now()
        await self._maybe_push()

    async def record_activity(self) -> None:
        """Фиксирует время последней активности после обработки аккаунта."""
        self.stats.last_activity_time = self.clock.now()
        await self._maybe_push()

    async def activate(self, chat_id: int) -> None:
        """Команда /start: включает бота и привязывает чат для статуса."""
        self.context.chat_id = chat_id
        self.context.is_active = True
        self.stats.last_activity_time = self.clock.now()
        await self.push_status()

    async def deactivate(self) -> None:
        """Команда /stop: выключает бота, отправляет финальный статус и отвязывает чат."""
        self.context.is_active = False
        await self.push_status()
        self.context.chat_id = None
        self.context.message_id = None

    async def _maybe_push(self) -> None:
        now = self.clock.monotonic()
        if now - self._last_push > self.update_interval:
            await self.push_status()
            self._last_push = now

    async def push_status(self) -> None:
        """Отправляет (или редактирует) статусное сообщение. Ошибки канала не пробрасываются."""
        async with self._push_lock:
            await self._push_locked()

    async def _push_locked(self) -> None:
        message = self.render()
        self.pushes_count += 1
        log_info(0, message.replace("\n", " | "), module_name="stats_reporter")

        if self.channel is None or self.context.chat_id is None:
            return

        if self.context.message_id is not None:
            try:
                await self.channel.edit_message(self.context.chat_id, self.context.message_id, message)
                return
            except Exception as e:
                log_warning(0, f"Не удалось отредактировать статусное сообщение: {e}", module_name="stats_reporter")

        await self._send_new_message(message)

    async def _send_new_message(self, message: str) -> None:
        try:
            self.context.message_id = await self.channel.send_message(self.context.chat_id, message)
        except Exception as e:
            log_error(0, f"Не удалось отправить новое статусное сообщение: {e}", module_name="stats_reporter")

    def render(self) -> str:
        """Текст статуса. Зависит только от Stats и флага активности."""
        stats = self.stats
        is_active = self.context.is_active
        status_emoji = "🟢" if is_active else "🔴"
        status_text = "Активен" if is_active else "Неактивен"

        return (
            f"<b>OKX Racer Bot: статус</b>\n\n"
            f"{status_emoji} <b>Состояние:</b> {status_text}\n"
            f"⏰ <b>Последняя активность:</b> "
            f"{format_timestamp(stats.last_activity_time, 'активности пока не было')}\n\n"
            f"📊 <b>Общая статистика:</b>\n"
            f"Всего ставок: {stats.total_accounts}\n"
            f"Победы: {stats.wins_count} | Поражения: {stats.losses_count}\n"
            f"Процент побед: {format_percentage(stats.win_rate)}\n"
            f"Итоговая прибыль: {format_points(stats.total_profit)} очков\n\n"
            f"🔄 Ежедневных заданий выполнено: {stats.daily_tasks_completed}\n"
            f"⬆️ Улучшений: {stats.upgrades_performed} | Заправок: {stats.boosts_used}\n"
            f"⚠️ Ошибок: {stats.errors_count}"
        )
