# core/settings_config.py

"""
Система конфигураций бота OKX Racer.
Загружает настройки из .env и предоставляет структурированный доступ к ним.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from environs import Env

from core.logger import log_info, log_error, parse_level


# --- ОСНОВНЫЕ ДАТА-КЛАССЫ КОНФИГУРАЦИИ ---

@dataclass
class TelegramConfig:
    """Конфигурация Telegram бота для отчётов"""
    token: str
    admin_ids: List[int] = field(default_factory=list)
    allowed_updates: List[str] = field(default_factory=lambda: ["message"])


@dataclass
class SessionConfig:
    """Конфигурация пользовательских Telegram-сессий (получение токенов)"""
    api_id: int = 0
    api_hash: str = ""
    session_dir: str = "session"
    device_model: str = "OKX Racer Bot"
    connection_retries: int = 5


@dataclass
class RacerApiConfig:
    """Конфигурация удалённого API игры"""
    base_url: str = "https://www.okx.com"
    link_code: str = "88910038"
    retry_count: int = 3
    retry_delay: float = 1.0
    request_timeout: float = 30.0


@dataclass
class CoordinatorConfig:
    """Тайминги координатора и рабочего цикла аккаунта (в секундах)"""
    data_file: str = "data.txt"
    cycle_cooldown: float = 5 * 60
    inactive_poll_interval: float = 60
    price_sample_interval: float = 4
    chance_delay: float = 1
    boost_cooldown: float = 5
    stats_update_interval: float = 5 * 60


@dataclass
class LoggingConfig:
    """Каталог и уровень логов"""
    log_dir: str = "logs"
    level: str = "INFO"


@dataclass
class SystemConfig:
    """Главная, корневая конфигурация системы"""
    telegram: TelegramConfig
    session: SessionConfig = field(default_factory=SessionConfig)
    racer_api: RacerApiConfig = field(default_factory=RacerApiConfig)
    coordinator: CoordinatorConfig = field(default_factory=CoordinatorConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def is_reporting_configured(self) -> bool:
        """Проверка, задан ли токен бота для отчётов."""
        return bool(self.telegram.token)


# --- КЛАСС ДЛЯ ЗАГРУЗКИ КОНФИГУРАЦИИ ИЗ .ENV ---

class ConfigLoader:
    """Загрузчик конфигураций из файла .env."""

    def __init__(self, env_file: str = ".env"):
        self.env = Env()
        env_path = Path(env_file)
        if env_path.exists():
            self.env.read_env(env_file)
            log_info(0, f"Файл .env загружен: {env_path.absolute()}", 'system_config')
        else:
            log_info(0, f"Файл .env не найден: {env_path.absolute()}. Используются переменные окружения системы.",
                     'system_config')

    def load_config(self) -> SystemConfig:
        """Загрузка и валидация полной конфигурации системы."""
        try:
            system_config_obj = SystemConfig(
                telegram=self._load_telegram_config(),
                session=self._load_session_config(),
                racer_api=self._load_racer_api_config(),
                coordinator=self._load_coordinator_config(),
                logging=self._load_logging_config(),
            )

            self._validate_config(system_config_obj)

            log_info(0, "Конфигурация системы успешно загружена и валидирована.", 'system_config')
            return system_config_obj

        except Exception as err:
            log_error(0, f"Критическая ошибка загрузки конфигурации: {err}", 'system_config')
            raise

    def _load_telegram_config(self) -> TelegramConfig:
        admin_ids_str = self.env.str("AUTHORIZED_USERS", "")
        admin_ids = [int(uid.strip()) for uid in admin_ids_str.split(',') if uid.strip().lstrip('-').isdigit()]
        token = self.env.str("TELEGRAM_BOT_TOKEN", "")
        if not token:
            log_error(0, "TELEGRAM_BOT_TOKEN не найден в .env или переменных окружения!", 'system_config')
        return TelegramConfig(token=token, admin_ids=admin_ids)

    def _load_session_config(self) -> SessionConfig:
        return SessionConfig(
            api_id=self.env.int("API_ID", 0),
            api_hash=self.env.str("API_HASH", ""),
            session_dir=self.env.str("SESSION_DIR", "session"),
            device_model=self.env.str("DEVICE_MODEL", "OKX Racer Bot"),
        )

    def _load_racer_api_config(self) -> RacerApiConfig:
        return RacerApiConfig(
            base_url=self.env.str("RACER_BASE_URL", "https://www.okx.com"),
            link_code=self.env.str("RACER_LINK_CODE", "88910038"),
            retry_count=self.env.int("RETRY_COUNT", 3),
            retry_delay=self.env.float("RETRY_DELAY", 1.0),
        )

    def _load_coordinator_config(self) -> CoordinatorConfig:
        return CoordinatorConfig(
            data_file=self.env.str("DATA_FILE", "data.txt"),
            cycle_cooldown=self.env.float("CYCLE_COOLDOWN_MINUTES", 5) * 60,
            inactive_poll_interval=self.env.float("INACTIVE_POLL_SECONDS", 60),
            price_sample_interval=self.env.float("PRICE_SAMPLE_SECONDS", 4),
            chance_delay=self.env.float("CHANCE_DELAY_SECONDS", 1),
            boost_cooldown=self.env.float("BOOST_COOLDOWN_SECONDS", 5),
            stats_update_interval=self.env.float("STATS_UPDATE_MINUTES", 5) * 60,
        )

    def _load_logging_config(self) -> LoggingConfig:
        return LoggingConfig(
            log_dir=self.env.str("LOG_DIR", "logs"),
            level=self.env.str("LOG_LEVEL", "INFO").upper(),
        )

    @staticmethod
    def _validate_config(config: SystemConfig):
        """Простая валидация ключевых полей."""
        parse_level(config.logging.level)
        # TELEGRAM_BOT_TOKEN обязателен только для режима запуска, проверяется в main
        if config.racer_api.retry_count < 1:
            raise ValueError("RETRY_COUNT должен быть не меньше 1")
        if config.racer_api.retry_delay < 0:
            raise ValueError("RETRY_DELAY не может быть отрицательным")


def load_system_config(env_file: str = ".env") -> SystemConfig:
    """Фабричная функция для загрузки конфигурации."""
    loader = ConfigLoader(env_file)
    return loader.load_config()
