# sessions/telethon_refresher.py
"""
Получение токенов (init data веб-приложения) через пользовательские Telegram-сессии.

Сессия хранится строкой Telethon StringSession в файле session_<name>.session.
Для получения токена сессия открывает веб-приложение OKX_official_bot и
вырезает фрагмент tgWebAppData из URL.
"""
import getpass
import time
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote

from telethon import TelegramClient, functions
from telethon.sessions import StringSession

from core.enums import SystemConstants
from core.exceptions import RefreshError
from core.logger import log_error, log_info, log_warning
from core.settings_config import SessionConfig

SESSION_PREFIX = "session_"
SESSION_SUFFIX = ".session"


def extract_init_data(url: str) -> str:
    """
    Вырезает init data из URL веб-приложения.

    URL имеет вид ...#tgWebAppData=<encoded>&tgWebAppVersion=..., результат URL-декодируется.

    Raises:
        RefreshError: в URL нет фрагмента tgWebAppData
    """
    if not url or "#tgWebAppData=" not in url:
        raise RefreshError("URL веб-приложения не содержит tgWebAppData")
    fragment = url.split("#tgWebAppData=", 1)[1].split("&tgWebAppVersion=", 1)[0]
    init_data = unquote(fragment)
    if not init_data:
        raise RefreshError("Пустой tgWebAppData в URL веб-приложения")
    return init_data


class TelethonRefresher:
    """Реализация CredentialRefresher поверх Telethon"""

    def __init__(self, config: SessionConfig):
        self.config = config
        self.session_dir = Path(config.session_dir)

    def _client(self, session_string: str = "") -> TelegramClient:
        return TelegramClient(
            StringSession(session_string),
            self.config.api_id,
            self.config.api_hash,
            device_model=self.config.device_model,
            connection_retries=self.config.connection_retries,
        )

    def list_session_handles(self) -> List[str]:
        """Имена файлов session_*.session в стабильном (отсортированном) порядке"""
        if not self.session_dir.is_dir():
            return []
        return sorted(p.name for p in self.session_dir.glob(f"{SESSION_PREFIX}*{SESSION_SUFFIX}") if p.is_file())

    async def create_session(self, phone_number: str, session_name: Optional[str] = None) -> str:
        """
        Интерактивный вход по номеру телефона: код из Telegram и, при наличии, пароль 2FA.

        Returns:
            Имя созданного файла сессии
        """
        if not self.config.api_id or not self.config.api_hash:
            raise RefreshError("API_ID и API_HASH не заданы")

        self.session_dir.mkdir(parents=True, exist_ok=True)
        client = self._client()
        try:
            await client.start(
                phone=lambda: phone_number,
                code_callback=lambda: input("Введите код из Telegram: "),
                password=lambda: getpass.getpass("Введите пароль 2FA: "),
            )
            session_string = client.session.save()
            handle = f"{SESSION_PREFIX}{session_name or int(time.time() * 1000)}{SESSION_SUFFIX}"
            (self.session_dir / handle).write_text(session_string, encoding="utf-8")
            await client.send_message("me", "Новая сессия OKX Racer Bot успешно создана!")
            log_info(0, f"Сессия сохранена в {self.session_dir / handle}", module_name="telethon_refresher")
            return handle
        finally:
            await client.disconnect()

    async def refresh(self, handle: str) -> str:
        """
        Возвращает свежий токен для сессии handle.

        Raises:
            RefreshError: файл сессии не читается, сессия не авторизована, веб-приложение не вернуло URL
        """
        session_path = self.session_dir / handle
        try:
            session_string = session_path.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise RefreshError(f"Не удалось прочитать сессию {session_path}: {e}") from e

        client = self._client(session_string)
        try:
            await client.connect()
            if not await client.is_user_authorized():
                raise RefreshError(f"Сессия {handle} не авторизована, создайте её заново")

            peer = await client.get_input_entity(SystemConstants.WEBAPP_BOT_USERNAME)
            webview = await client(functions.messages.RequestWebViewRequest(
                peer=peer,
                bot=peer,
                platform="android",
                from_bot_menu=False,
                url=SystemConstants.WEBAPP_URL,
            ))
            init_data = extract_init_data(getattr(webview, "url", ""))
            log_info(0, f"Получен новый токен для сессии {handle}", module_name="telethon_refresher")
            return init_data
        except RefreshError:
            raise
        except Exception as e:
            log_error(0, f"Ошибка получения токена для сессии {handle}: {e}", module_name="telethon_refresher")
            raise RefreshError(f"Сессия {handle}: {e}") from e
        finally:
            try:
                await client.disconnect()
            except Exception as e:
                log_warning(0, f"Ошибка отключения клиента {handle}: {e}", module_name="telethon_refresher")
