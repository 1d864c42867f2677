"""
Команды оператора: /start, /stop, /status
"""
from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from core.logger import log_info, log_error
from core.stats_reporter import StatsReporter

router = Router()


@router.message(CommandStart())
async def cmd_start(message: Message, stats_reporter: StatsReporter):
    """Включает бота и привязывает текущий чат для статуса"""
    user_id = message.from_user.id
    try:
        log_info(user_id, "Команда '/start' выполнена", module_name='basic_handlers')
        await stats_reporter.activate(message.chat.id)
        await message.answer("🚀 OKX Racer Bot запущен. Обновления статуса будут приходить сюда.")
    except Exception as e:
        log_error(user_id, f"Ошибка в команде /start: {e}", module_name='basic_handlers')
        await message.answer("❌ Не удалось запустить бота. Подробности в логах.")


@router.message(Command("stop"))
async def cmd_stop(message: Message, stats_reporter: StatsReporter):
    """Останавливает бота после текущего прохода и отвязывает чат"""
    user_id = message.from_user.id
    try:
        log_info(user_id, "Команда '/stop' выполнена", module_name='basic_handlers')
        await stats_reporter.deactivate()
        await message.answer("⏹ OKX Racer Bot остановлен. Обновления больше не будут приходить.")
    except Exception as e:
        log_error(user_id, f"Ошибка в команде /stop: {e}", module_name='basic_handlers')
        await message.answer("❌ Не удалось остановить бота. Подробности в логах.")


@router.message(Command("status"))
async def cmd_status(message: Message, stats_reporter: StatsReporter):
    """Принудительная отправка статуса"""
    user_id = message.from_user.id
    log_info(user_id, "Команда '/status' выполнена", module_name='basic_handlers')
    if stats_reporter.context.chat_id is None:
        # чат ещё не привязан командой /start
        await message.answer(stats_reporter.render())
        return
    await stats_reporter.push_status()
