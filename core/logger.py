# core/logger.py
"""
Логирование бота OKX Racer.

Одна строка на событие: время | уровень | Acc:<id аккаунта> | модуль | сообщение.
Пишется в ротируемый файл и в stdout. При импорте логгер настраивается по
переменным окружения LOG_DIR и LOG_LEVEL, main перенастраивает его по конфигу.
"""
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

AccountId = Union[int, str]

LOGGER_NAME = "RacerBot"
LOG_FILE = "racer_bot.log"
MAX_LOG_BYTES = 20 * 1024 * 1024
LOG_BACKUPS = 5

_logger = logging.getLogger(LOGGER_NAME)


class AccountLineFormatter(logging.Formatter):
    """Однострочный формат с id аккаунта и именем модуля"""

    def format(self, record):
        return (
            f"{datetime.fromtimestamp(record.created).isoformat()} | "
            f"{record.levelname:<8} | "
            f"Acc:{str(getattr(record, 'account_id', 0)):<12} | "
            f"{getattr(record, 'module_name', 'Unknown'):<20} | "
            f"{record.getMessage()}"
        )


def parse_level(level: Union[str, int]) -> int:
    """'debug' / 'INFO' / 10 -> числовой уровень logging. Неизвестное имя - ValueError."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Неизвестный уровень логирования: {level!r}")
    return value


def configure_logging(log_dir: str = "logs", level: Union[str, int] = "INFO") -> logging.Logger:
    """(Пере)настраивает обработчики логгера. Повторный вызов заменяет старые обработчики."""
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)

    for handler in list(_logger.handlers):
        _logger.removeHandler(handler)
        handler.close()

    _logger.setLevel(parse_level(level))
    _logger.propagate = False

    formatter = AccountLineFormatter()
    file_handler = logging.handlers.RotatingFileHandler(
        filename=directory / LOG_FILE, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8",
    )
    console_handler = logging.StreamHandler(sys.stdout)
    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)
        _logger.addHandler(handler)

    return _logger


def _emit(level: int, account_id: AccountId, message: str, module_name: str,
          extra_data: Optional[Dict[str, Any]]):
    if extra_data:
        message = f"{message} | data: {extra_data}"
    _logger.log(level, message, extra={"account_id": account_id, "module_name": module_name})


def log_info(account_id: AccountId, message: str, module_name: str = "Unknown",
             extra_data: Optional[Dict[str, Any]] = None):
    _emit(logging.INFO, account_id, message, module_name, extra_data)


def log_error(account_id: AccountId, message: str, module_name: str = "Unknown",
              extra_data: Optional[Dict[str, Any]] = None):
    _emit(logging.ERROR, account_id, message, module_name, extra_data)


def log_warning(account_id: AccountId, message: str, module_name: str = "Unknown",
                extra_data: Optional[Dict[str, Any]] = None):
    _emit(logging.WARNING, account_id, message, module_name, extra_data)


def log_debug(account_id: AccountId, message: str, module_name: str = "Unknown",
              extra_data: Optional[Dict[str, Any]] = None):
    _emit(logging.DEBUG, account_id, message, module_name, extra_data)


def log_critical(account_id: AccountId, message: str, module_name: str = "Unknown",
                 extra_data: Optional[Dict[str, Any]] = None):
    _emit(logging.CRITICAL, account_id, message, module_name, extra_data)


configure_logging(os.environ.get("LOG_DIR", "logs"), os.environ.get("LOG_LEVEL", "INFO"))
