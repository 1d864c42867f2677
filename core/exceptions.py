# core/exceptions.py
"""
Иерархия исключений бота.

- RemoteAPIError: сбой удалённого API (сеть, HTTP, бизнес-код, неполный ответ)
- CredentialDecodeError: токен не декодируется в идентичность аккаунта
- StorageError: файл с токенами недоступен на чтение/запись (фатально для процесса)
- RefreshError: не удалось получить новый токен через Telegram-сессию
"""
from typing import Optional


class RacerBotError(Exception):
    """Базовое исключение бота."""


class RemoteAPIError(RacerBotError):
    """Ошибка вызова удалённого API игры."""

    def __init__(self, message: str, http_status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.http_status = http_status

    def __str__(self) -> str:
        if self.http_status is not None:
            return f"HTTP {self.http_status}: {self.message}"
        return self.message


class CredentialDecodeError(RacerBotError):
    """Токен авторизации не содержит корректного параметра user."""


class StorageError(RacerBotError):
    """Хранилище токенов недоступно."""


class RefreshError(RacerBotError):
    """Не удалось получить новый токен для сессии."""
