"""Tests for the entry point's top-level error handling."""

import pytest

import main
from core.exceptions import StorageError
from core.settings_config import SystemConfig, TelegramConfig


@pytest.fixture
def critical(monkeypatch):
    messages = []
    monkeypatch.setattr(main, "log_critical", lambda account_id, message, module_name="Unknown": messages.append(message))
    monkeypatch.setattr(main, "configure_logging", lambda log_dir, level: None)
    return messages


def use_config(monkeypatch):
    monkeypatch.setattr(main, "load_system_config", lambda env_file: SystemConfig(telegram=TelegramConfig(token="")))


def test_invalid_config_is_logged_not_raised(monkeypatch, critical):
    def broken_config(env_file):
        raise ValueError("RETRY_COUNT должен быть не меньше 1")

    monkeypatch.setattr(main, "load_system_config", broken_config)

    main.main(["--mode", "2"])

    assert len(critical) == 1
    assert "ValueError" in critical[0]
    assert "RETRY_COUNT" in critical[0]


def test_telegram_login_failure_is_logged(monkeypatch, critical):
    use_config(monkeypatch)

    async def failing_login(config):
        raise ConnectionError("Telegram недоступен")

    monkeypatch.setattr(main, "create_session", failing_login)

    main.main(["--mode", "1"])

    assert critical == ["Критическая ошибка (ConnectionError): Telegram недоступен"]


def test_bot_errors_are_logged(monkeypatch, critical):
    use_config(monkeypatch)

    async def unreadable_store(config):
        raise StorageError("Не удалось прочитать data.txt")

    monkeypatch.setattr(main, "refresh_all_sessions", unreadable_store)

    main.main(["--mode", "2"])

    assert critical == ["Ошибка: Не удалось прочитать data.txt"]

