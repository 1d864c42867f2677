"""
Контракты внешних зависимостей ядра.

Координатор и StatsReporter не знают ни про Telethon, ни про aiogram:
им нужен только тот минимум, что описан здесь.
"""
from typing import List, Optional, Protocol


class CredentialRefresher(Protocol):
    """Получение нового токена через зарегистрированную Telegram-сессию."""

    def list_session_handles(self) -> List[str]:
        """Имена всех известных сессий в стабильном порядке."""
        ...

    async def refresh(self, handle: str) -> str:
        """
        Возвращает свежий токен для сессии.

        Raises:
            RefreshError: если токен получить не удалось
        """
        ...


class ReportingChannel(Protocol):
    """Канал, куда уходит статус бота."""

    async def send_message(self, chat_id: int, text: str) -> Optional[int]:
        """Отправляет сообщение и возвращает его id."""
        ...

    async def edit_message(self, chat_id: int, message_id: int, text: str) -> None:
        """Редактирует ранее отправленное сообщение."""
        ...
