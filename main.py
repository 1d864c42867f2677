import sys
import os
import asyncio
import argparse

# --- 1. Настройка путей (обязательно в самом верху) ---
project_root = os.path.dirname(os.path.abspath(__file__))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# --- 2. Импорты ---
from core.logger import configure_logging, log_info, log_error, log_warning, log_critical
from core.settings_config import SystemConfig, load_system_config
from core.clock import system_clock
from core.enums import StatsEventKind
from core.exceptions import RacerBotError
from core.models import ReportingContext, UpgradeOptions
from core.stats_reporter import StatsReporter
from storage.credential_store import CredentialStore
from api.racer_api import RacerAPI
from strategies.account_workflow import AccountWorkflow
from coordinator.account_coordinator import AccountCoordinator, populate_store
from sessions.telethon_refresher import TelethonRefresher
from telegram.bot import TelegramBotManager

BANNER = r"""
  ___  _  ____  __  ____
 / _ \| |/ /\ \/ / |  _ \ __ _  ___ ___ _ __
| | | | ' /  \  /  | |_) / _` |/ __/ _ \ '__|
| |_| | . \  /  \  |  _ < (_| | (_|  __/ |
 \___/|_|\_\/_/\_\ |_| \_\__,_|\___\___|_|
"""

MENU = (
    "Выберите режим:\n"
    "  1. Создать сессию\n"
    "  2. Получить токены из сессий\n"
    "  3. Запустить бота\n"
)


def ask_yes_no(question: str) -> bool:
    return input(f"{question} (y/n): ").strip().lower() == "y"


async def create_session(config: SystemConfig):
    """Режим 1: регистрация новой Telegram-сессии"""
    refresher = TelethonRefresher(config.session)
    phone_number = input("Введите номер телефона (например, +79991234567): ").strip()
    session_name = input("Введите имя сессии (Enter - по времени): ").strip() or None
    handle = await refresher.create_session(phone_number, session_name)
    log_info(0, f"Сессия {handle} создана", module_name="main")


async def refresh_all_sessions(config: SystemConfig):
    """Режим 2: получить токены по всем сессиям и дописать новые в хранилище"""
    refresher = TelethonRefresher(config.session)
    store = CredentialStore(config.coordinator.data_file)
    added = await populate_store(store, refresher)
    log_info(0, f"Добавлено новых токенов: {added}, всего в хранилище: {len(store)}", module_name="main")


async def run_bot(config: SystemConfig, upgrades: UpgradeOptions):
    """Режим 3: бот отчётов и координатор аккаунтов в одном цикле событий"""
    log_info(0, "=== ЗАПУСК OKX RACER BOT ===", module_name="main")

    if not config.is_reporting_configured():
        log_critical(0, "TELEGRAM_BOT_TOKEN не задан, запуск невозможен", module_name="main")
        return

    coordinator_config = config.coordinator
    context = ReportingContext()
    reporter = StatsReporter(context, clock=system_clock,
                             update_interval=coordinator_config.stats_update_interval)

    async def count_api_call(name: str):
        await reporter.update(StatsEventKind.API_CALL, {"type": name})

    api = RacerAPI(
        base_url=config.racer_api.base_url,
        link_code=config.racer_api.link_code,
        retry_count=config.racer_api.retry_count,
        retry_delay=config.racer_api.retry_delay,
        request_timeout=config.racer_api.request_timeout,
        clock=system_clock,
        on_call=count_api_call,
    )
    workflow = AccountWorkflow(
        api, reporter, upgrades, clock=system_clock,
        price_sample_interval=coordinator_config.price_sample_interval,
        chance_delay=coordinator_config.chance_delay,
        boost_cooldown=coordinator_config.boost_cooldown,
    )
    coordinator = AccountCoordinator(
        store=CredentialStore(coordinator_config.data_file),
        refresher=TelethonRefresher(config.session),
        workflow=workflow,
        reporter=reporter,
        context=context,
        clock=system_clock,
        cycle_cooldown=coordinator_config.cycle_cooldown,
        inactive_poll_interval=coordinator_config.inactive_poll_interval,
    )
    bot_manager = TelegramBotManager(config.telegram, reporter)

    try:
        await bot_manager.initialize()
        reporter.set_channel(bot_manager)

        log_info(0, "=== БОТ ЗАПУЩЕН, ОТПРАВЬТЕ /start В TELEGRAM ===", module_name="main")
        await asyncio.gather(bot_manager.start_polling(), coordinator.run())

    except RacerBotError as e:
        log_critical(0, f"Критическая ошибка работы бота: {e}", module_name="main")
    finally:
        # --- ГАРАНТИРОВАННАЯ ОЧИСТКА РЕСУРСОВ ---
        log_info(0, "=== НАЧАЛО ПРОЦЕДУРЫ ЗАВЕРШЕНИЯ РАБОТЫ ===", module_name="main")
        coordinator.stop()

        try:
            await api.close()
        except Exception as e:
            log_error(0, f"Ошибка закрытия HTTP сессии: {e}", module_name="main")

        try:
            await bot_manager.stop()
        except Exception as e:
            log_error(0, f"Ошибка остановки bot_manager: {e}", module_name="main")

        log_info(0, "=== БОТ ПОЛНОСТЬЮ ОСТАНОВЛЕН ===", module_name="main")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="OKX Racer Bot")
    parser.add_argument("--mode", type=int, choices=[1, 2, 3], help="режим работы без меню")
    parser.add_argument("--env-file", default=".env", help="путь к файлу .env")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    print(BANNER)

    mode = args.mode
    if mode is None:
        print(MENU)
        choice = input("Режим: ").strip()
        if choice not in ("1", "2", "3"):
            log_warning(0, f"Неизвестный режим: {choice}", module_name="main")
            return
        mode = int(choice)

    try:
        config = load_system_config(args.env_file)
        configure_logging(config.logging.log_dir, config.logging.level)

        if mode == 1:
            asyncio.run(create_session(config))
        elif mode == 2:
            asyncio.run(refresh_all_sessions(config))
        else:
            upgrades = UpgradeOptions(
                fuel_tank=ask_yes_no("Улучшать топливный бак?"),
                turbo=ask_yes_no("Улучшать турбо-нагнетатель?"),
            )
            asyncio.run(run_bot(config, upgrades))
    except (KeyboardInterrupt, SystemExit):
        log_info(0, "Получен сигнал завершения (KeyboardInterrupt/SystemExit)", module_name="main")
    except RacerBotError as e:
        log_critical(0, f"Ошибка: {e}", module_name="main")
    except Exception as e:
        # ошибки конфигурации, входа в Telegram и прочие непредвиденные
        log_critical(0, f"Критическая ошибка ({type(e).__name__}): {e}", module_name="main")


if __name__ == "__main__":
    main()
