# core/enums.py
"""
Перечисления бота OKX Racer
"""
from enum import Enum, IntEnum


class PredictionDirection(IntEnum):
    """Направление прогноза. Значение уходит в поле predict запроса assess."""
    SELL = 0
    BUY = 1

    @property
    def label(self) -> str:
        return "Sell" if self is PredictionDirection.SELL else "Buy"


class BoostKind(IntEnum):
    """Идентификаторы бустов игры"""
    REFUEL = 1       # Перезаправка (восстанавливает шансы)
    FUEL_TANK = 2    # Улучшение ёмкости бака
    TURBO = 3        # Турбо-нагнетатель (улучшение скорости)


class StatsEventKind(Enum):
    """Типы событий статистики"""
    ACCOUNT_UPDATE = "account_update"
    DAILY_TASK = "daily_task"
    UPGRADE = "upgrade"
    BOOST_USE = "boost_use"
    API_CALL = "api_call"
    ERROR = "error"


class AccountOutcome(Enum):
    """Итог обработки одного аккаунта за проход"""
    COMPLETED = "completed"
    SOFT_STOP = "soft_stop"


class SystemConstants:
    """Системные константы игры"""
    GAME_ID = 1
    DAILY_CHECK_IN_TASK_ID = 4
    TASK_STATE_UNCLAIMED = 0
    WEBAPP_BOT_USERNAME = "OKX_official_bot"
    WEBAPP_URL = "https://www.okx.com/"
    TICKER_INSTRUMENT = "BTC-USDT"
