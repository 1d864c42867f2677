"""
Инициализация Telegram бота для отчётов оператору
"""
from typing import Any, Awaitable, Callable, Dict, List, Optional

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.types import BotCommand, Message

from core.logger import log_info, log_error, log_warning
from core.settings_config import TelegramConfig
from core.stats_reporter import StatsReporter

UNAUTHORIZED_TEXT = "⛔ Доступ запрещён. Попытка будет зафиксирована."


def build_admin_middleware(admin_ids: List[int]):
    """Middleware, пропускающий только сообщения операторов из списка admin_ids"""

    async def admin_only_middleware(handler: Callable[[Message, Dict[str, Any]], Awaitable[Any]],
                                    event: Message, data: Dict[str, Any]):
        user_id = event.from_user.id if event.from_user else None
        if user_id not in admin_ids:
            log_warning(user_id or 0, f"Попытка доступа от неавторизованного пользователя {user_id}",
                        module_name='bot')
            await event.answer(UNAUTHORIZED_TEXT)
            return None
        return await handler(event, data)

    return admin_only_middleware


class TelegramBotManager:
    """Менеджер Telegram бота. Служит каналом для статусных сообщений StatsReporter."""

    def __init__(self, config: TelegramConfig, stats_reporter: StatsReporter):
        self.config = config
        self.stats_reporter = stats_reporter
        self.bot: Optional[Bot] = None
        self.dp: Optional[Dispatcher] = None
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def initialize(self) -> None:
        """Создание бота, диспетчера и регистрация обработчиков."""
        try:
            log_info(0, "Инициализация Telegram бота...", module_name='bot')

            self.bot = Bot(
                token=self.config.token,
                default=DefaultBotProperties(
                    parse_mode=ParseMode.HTML,
                    link_preview_is_disabled=True,
                )
            )
            bot_info = await self.bot.get_me()
            log_info(0, f"Бот инициализирован: @{bot_info.username} ({bot_info.full_name})", module_name='bot')

            # StatsReporter передаётся во все обработчики через workflow data
            self.dp = Dispatcher(stats_reporter=self.stats_reporter)

            from telegram.handlers.basic import router as basic_router
            self.dp.include_router(basic_router)

            self._setup_middleware()
            await self._setup_bot_commands()

            log_info(0, "Telegram бот успешно инициализирован", module_name='bot')

        except Exception as e:
            log_error(0, f"Ошибка инициализации Telegram бота: {e}", module_name='bot')
            raise

    def _setup_middleware(self) -> None:
        self.dp.message.middleware(build_admin_middleware(self.config.admin_ids))

        @self.dp.message.middleware()
        async def logging_middleware(handler, event, data):
            user_id = event.from_user.id if event.from_user else None
            log_info(user_id or 0, f"Получено сообщение: {(event.text or '')[:50]}", module_name='bot')
            return await handler(event, data)

        log_info(0, f"Middleware настроены, операторов в списке: {len(self.config.admin_ids)}", module_name='bot')

    async def _setup_bot_commands(self) -> None:
        try:
            commands = [
                BotCommand(command="start", description="🚀 Запуск бота"),
                BotCommand(command="stop", description="⏹ Остановка бота"),
                BotCommand(command="status", description="📊 Текущая статистика"),
            ]
            await self.bot.set_my_commands(commands)
        except Exception as e:
            log_warning(0, f"Не удалось установить команды бота: {e}", module_name='bot')

    async def start_polling(self) -> None:
        """Запуск бота в режиме polling"""
        try:
            if not self.dp or not self.bot:
                raise ValueError("Бот не инициализирован")

            log_info(0, "Запуск бота в режиме polling...", module_name='bot')
            self._is_running = True

            await self.bot.delete_webhook(drop_pending_updates=True)
            await self.dp.start_polling(
                self.bot,
                allowed_updates=self.config.allowed_updates,
                handle_signals=False,
            )

        except Exception as e:
            log_error(0, f"Ошибка запуска polling: {e}", module_name='bot')
            raise
        finally:
            self._is_running = False

    async def stop(self) -> None:
        """Остановка бота"""
        try:
            log_info(0, "Остановка Telegram бота...", module_name='bot')

            if self.dp and self._is_running:
                await self.dp.stop_polling()
            self._is_running = False

            if self.bot:
                await self.bot.session.close()

            log_info(0, "Telegram бот остановлен", module_name='bot')

        except Exception as e:
            log_error(0, f"Ошибка остановки бота: {e}", module_name='bot')

    # --- ReportingChannel ---

    async def send_message(self, chat_id: int, text: str) -> Optional[int]:
        if not self.bot:
            raise RuntimeError("Бот не инициализирован")
        message = await self.bot.send_message(chat_id=chat_id, text=text)
        return message.message_id

    async def edit_message(self, chat_id: int, message_id: int, text: str) -> None:
        if not self.bot:
            raise RuntimeError("Бот не инициализирован")
        await self.bot.edit_message_text(text=text, chat_id=chat_id, message_id=message_id)
