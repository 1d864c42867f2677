# core/models.py
"""
Модели данных бота: записи ответов API, статистика, контекст отчётности.

Каждая запись ответа API валидирует обязательные поля при разборе:
отсутствующее поле считается ошибкой удалённого API, а не неопределённым поведением.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs

from core.enums import BoostKind, PredictionDirection, SystemConstants
from core.exceptions import CredentialDecodeError, RemoteAPIError


def _require(data: Dict[str, Any], key: str, endpoint: str) -> Any:
    """Достаёт обязательное поле из ответа или выбрасывает RemoteAPIError."""
    if not isinstance(data, dict) or data.get(key) is None:
        raise RemoteAPIError(f"{endpoint}: в ответе отсутствует поле '{key}'")
    return data[key]


def _to_number(value: Any, key: str, endpoint: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise RemoteAPIError(f"{endpoint}: поле '{key}' не является числом: {value!r}")


def _to_int(value: Any, key: str, endpoint: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise RemoteAPIError(f"{endpoint}: поле '{key}' не является целым числом: {value!r}")


def _to_optional_number(value: Any, key: str, endpoint: str) -> Optional[float]:
    return None if value is None else _to_number(value, key, endpoint)


# --- Идентичность аккаунта ---

@dataclass(frozen=True)
class CredentialIdentity:
    """Аккаунт игры, к которому привязан токен"""
    ext_user_id: int
    ext_user_name: str


def decode_credential(credential: str) -> CredentialIdentity:
    """
    Декодирует токен (init data веб-приложения Telegram) в идентичность аккаунта.

    Токен - это query-строка с параметром user, содержащим JSON с полями id и username.

    Raises:
        CredentialDecodeError: параметр user отсутствует или повреждён
    """
    credential = credential or ""
    params = parse_qs(credential, keep_blank_values=True)
    user_values = params.get("user")
    if not user_values or not user_values[0]:
        raise CredentialDecodeError(f"Некорректный токен: нет параметра user ({credential[:40]!r}...)")

    try:
        user = json.loads(user_values[0])
        user_id = int(user["id"])
    except (ValueError, KeyError, TypeError) as e:
        raise CredentialDecodeError(f"Некорректный параметр user в токене: {e}")

    return CredentialIdentity(ext_user_id=user_id, ext_user_name=user.get("username") or "")


# --- Записи ответов API ---

@dataclass
class DailyTask:
    """Ежедневное задание"""
    id: int
    state: int

    @property
    def is_unclaimed(self) -> bool:
        return self.state == SystemConstants.TASK_STATE_UNCLAIMED

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "DailyTask":
        return cls(
            id=_to_int(_require(data, "id", "tasks"), "id", "tasks"),
            state=_to_int(_require(data, "state", "tasks"), "state", "tasks"),
        )


@dataclass
class BoostState:
    """Состояние одного буста"""
    id: int
    name: str
    current_stage: int
    total_stage: int
    point_cost: float

    @property
    def is_maxed(self) -> bool:
        return self.current_stage >= self.total_stage

    def can_purchase(self, balance: float) -> bool:
        """Буст можно купить, если он не на максимуме и баланс строго больше стоимости."""
        return not self.is_maxed and balance > self.point_cost

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "BoostState":
        context = data.get("context") if isinstance(data, dict) else None
        name = context.get("name") if isinstance(context, dict) else None
        boost_id = _to_int(_require(data, "id", "boosts"), "id", "boosts")
        return cls(
            id=boost_id,
            name=name or f"boost_{boost_id}",
            current_stage=_to_int(_require(data, "curStage", "boosts"), "curStage", "boosts"),
            total_stage=_to_int(_require(data, "totalStage", "boosts"), "totalStage", "boosts"),
            point_cost=_to_number(data.get("pointCost", 0), "pointCost", "boosts"),
        )


def find_boost(boosts: List[BoostState], kind: BoostKind) -> Optional[BoostState]:
    """Возвращает буст нужного типа или None."""
    for boost in boosts:
        if boost.id == kind:
            return boost
    return None


@dataclass
class AccountInfo:
    """Информация об аккаунте из эндпоинта info"""
    balance_points: float

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AccountInfo":
        return cls(balance_points=_to_number(_require(data, "balancePoints", "info"), "balancePoints", "info"))


@dataclass
class RoundResult:
    """Результат одной ставки"""
    predicted: PredictionDirection
    won: bool
    multiplier: float
    base_points: float
    balance_before: float
    balance_after: float
    remaining_chances: int
    prev_price: Optional[float] = None
    current_price: Optional[float] = None

    @property
    def points_delta(self) -> float:
        """Изменение очков: basePoint * multiplier со знаком исхода."""
        value = self.base_points * self.multiplier
        return value if self.won else -value

    @classmethod
    def from_api(cls, data: Dict[str, Any], predicted: PredictionDirection,
                 balance_before: float) -> "RoundResult":
        won = _require(data, "won", "assess")
        prev_price = data.get("prevPrice")
        current_price = data.get("currentPrice")
        return cls(
            predicted=predicted,
            won=bool(won),
            multiplier=_to_number(_require(data, "multiplier", "assess"), "multiplier", "assess"),
            base_points=_to_number(_require(data, "basePoint", "assess"), "basePoint", "assess"),
            balance_before=balance_before,
            balance_after=_to_number(_require(data, "balancePoints", "assess"), "balancePoints", "assess"),
            remaining_chances=_to_int(_require(data, "numChance", "assess"), "numChance", "assess"),
            prev_price=_to_optional_number(prev_price, "prevPrice", "assess"),
            current_price=_to_optional_number(current_price, "currentPrice", "assess"),
        )


# --- Статистика и отчётность ---

@dataclass
class Stats:
    """Агрегированная статистика за время жизни процесса. Изменяется только StatsReporter."""
    total_accounts: int = 0  # всего ставок
    wins_count: int = 0
    losses_count: int = 0
    total_profit: float = 0
    daily_tasks_completed: int = 0
    upgrades_performed: int = 0
    boosts_used: int = 0
    errors_count: int = 0
    remote_calls: int = 0
    last_update_time: Optional[datetime] = None
    last_activity_time: Optional[datetime] = None

    @property
    def win_rate(self) -> float:
        if self.total_accounts == 0:
            return 0.0
        return self.wins_count / self.total_accounts * 100


@dataclass
class ReportingContext:
    """
    Состояние отчётности, которое разделяют координатор, StatsReporter и обработчики Telegram.

    is_active - флаг работы бота (/start, /stop)
    chat_id - чат, куда отправляется статус
    message_id - последнее статусное сообщение (редактируется вместо отправки нового)
    """
    is_active: bool = False
    chat_id: Optional[int] = None
    message_id: Optional[int] = None


@dataclass
class UpgradeOptions:
    """Включённые оператором улучшения"""
    fuel_tank: bool = False
    turbo: bool = False


@dataclass
class WorkItem:
    """Элемент очереди обработки: слот в хранилище и токен"""
    slot: int
    credential: str
    is_replacement: bool = False


@dataclass
class PassSummary:
    """Итог одного прохода по всем аккаунтам"""
    processed: int = 0
    completed: int = 0
    soft_stopped: int = 0
    failed: int = 0
    replaced: int = 0
    handles_used: List[str] = field(default_factory=list)
