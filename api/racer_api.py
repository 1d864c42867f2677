# api/racer_api.py
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import aiohttp

from core.clock import Clock, system_clock
from core.enums import PredictionDirection, SystemConstants
from core.exceptions import RemoteAPIError
from core.logger import log_debug, log_error, log_info, log_warning
from core.models import AccountInfo, BoostState, CredentialIdentity, DailyTask, RoundResult

T = TypeVar("T")


async def retry_request(func: Callable[[], Awaitable[T]], retries: int = 3, delay: float = 1.0,
                        clock: Clock = system_clock, account_id: int = 0, description: str = "") -> T:
    """
    Выполняет func до retries раз с фиксированной паузой delay между попытками.

    Счётчик попыток свой у каждого вызова. После последней неудачи исходное
    исключение пробрасывается без изменений.
    """
    attempts = max(1, retries)
    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except Exception as e:
            if attempt >= attempts:
                log_error(account_id, f"{description or 'Запрос'}: все {attempts} попытки исчерпаны: {e}",
                          module_name="racer_api")
                raise
            log_warning(account_id, f"{description or 'Запрос'}: ошибка (попытка {attempt}/{attempts}): {e}",
                        module_name="racer_api")
            await clock.sleep(delay)


class RacerAPI:
    """
    HTTP клиент игры OKX Racer

    Особенности:
    - Одна aiohttp сессия на весь процесс, создаётся при первом запросе
    - Токен аккаунта передаётся в каждом вызове заголовком X-Telegram-Init-Data
    - Сетевые ошибки повторяются через retry_request, бизнес-ошибки (code != 0) нет
    """

    GAME_PATH = "/priapi/v1/affiliate/game/racer/"
    TICKER_PATH = "/api/v5/market/ticker"

    def __init__(self, base_url: str = "https://www.okx.com", link_code: str = "88910038",
                 retry_count: int = 3, retry_delay: float = 1.0, request_timeout: float = 30.0,
                 clock: Clock = system_clock,
                 on_call: Optional[Callable[[str], Awaitable[None]]] = None):
        self.base_url = base_url.rstrip("/")
        self.link_code = link_code
        self.retry_count = retry_count
        self.retry_delay = retry_delay
        self.request_timeout = request_timeout
        self.clock = clock
        self.on_call = on_call

        # Счётчик удалённых вызовов (для диагностики)
        self.calls_issued = 0

        self.session: Optional[aiohttp.ClientSession] = None

    def base_headers(self) -> Dict[str, str]:
        """Набор заголовков веб-клиента okx.com"""
        return {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate, br",
            "Accept-Language": "en-US,en;q=0.9",
            "App-Type": "web",
            "Content-Type": "application/json",
            "Origin": self.base_url,
            "Referer": f"{self.base_url}/mini-app/racer?tgWebAppStartParam=linkCode_{self.link_code}",
            "Sec-Ch-Ua": '"Not/A)Brand";v="8", "Chromium";v="126", "Microsoft Edge";v="126"',
            "Sec-Ch-Ua-Mobile": "?0",
            "Sec-Ch-Ua-Platform": '"Windows"',
            "Sec-Fetch-Dest": "empty",
            "Sec-Fetch-Mode": "cors",
            "Sec-Fetch-Site": "same-origin",
            "User-Agent": ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
                           "Chrome/126.0.0.0 Safari/537.36 Edg/126.0.0.0"),
            "X-Cdn": self.base_url,
            "X-Locale": "en_US",
            "X-Utc": "7",
            "X-Zkdex-Env": "0",
        }

    async def _ensure_session(self):
        """Создаёт HTTP сессию при первом вызове и переиспользует её."""
        if self.session is None or self.session.closed:
            timeout = aiohttp.ClientTimeout(total=self.request_timeout)
            self.session = aiohttp.ClientSession(timeout=timeout)

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
            self.session = None

    async def _count_call(self, name: str) -> None:
        self.calls_issued += 1
        if self.on_call is not None:
            await self.on_call(name)

    async def _send(self, method: str, url: str, headers: Dict[str, str],
                    params: Optional[Dict[str, Any]] = None,
                    payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Одна попытка HTTP запроса. Любая транспортная проблема превращается в RemoteAPIError."""
        await self._ensure_session()
        try:
            async with self.session.request(method, url, headers=headers, params=params, json=payload) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise RemoteAPIError(f"{method} {url}: {text[:200]}", http_status=response.status)
                body = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise RemoteAPIError(f"{method} {url}: таймаут запроса") from e
        except aiohttp.ClientError as e:
            raise RemoteAPIError(f"{method} {url}: {e}") from e
        except ValueError as e:
            raise RemoteAPIError(f"{method} {url}: некорректный JSON в ответе") from e

        if not isinstance(body, dict):
            raise RemoteAPIError(f"{method} {url}: неожиданный формат ответа")
        return body

    async def _request(self, method: str, endpoint: str, credential: str,
                       payload: Optional[Dict[str, Any]] = None, account_id: int = 0) -> Dict[str, Any]:
        """Запрос к эндпоинту игры с ретраями. Возвращает тело ответа целиком."""
        url = f"{self.base_url}{self.GAME_PATH}{endpoint}"
        params = {"t": str(self.clock.timestamp_ms())}
        headers = {**self.base_headers(), "X-Telegram-Init-Data": credential}

        await self._count_call(endpoint)
        return await retry_request(
            lambda: self._send(method, url, headers, params=params, payload=payload),
            retries=self.retry_count, delay=self.retry_delay, clock=self.clock,
            account_id=account_id, description=f"{method} {endpoint}",
        )

    @staticmethod
    def _unwrap(body: Dict[str, Any], endpoint: str) -> Any:
        """Проверяет бизнес-код ответа и возвращает поле data."""
        code = body.get("code")
        if str(code) != "0":
            raise RemoteAPIError(f"{endpoint}: код ответа {code}, {body.get('msg') or body.get('error_message') or ''}")
        if body.get("data") is None:
            raise RemoteAPIError(f"{endpoint}: в ответе отсутствует поле 'data'")
        return body["data"]

    # =============================================================================
    # ЭНДПОИНТЫ ИГРЫ
    # =============================================================================

    async def fetch_daily_tasks(self, credential: str, account_id: int = 0) -> List[DailyTask]:
        body = await self._request("GET", "tasks", credential, account_id=account_id)
        data = self._unwrap(body, "tasks")
        if not isinstance(data, list):
            raise RemoteAPIError("tasks: поле 'data' не является списком")
        return [DailyTask.from_api(item) for item in data]

    async def claim_daily_task(self, credential: str, identity: CredentialIdentity, task_id: int) -> None:
        payload = {"extUserId": identity.ext_user_id, "id": task_id}
        body = await self._request("POST", "task", credential, payload, account_id=identity.ext_user_id)
        code = body.get("code")
        if str(code) != "0":
            raise RemoteAPIError(f"task: не удалось выполнить задание {task_id}, код {code}")
        log_info(identity.ext_user_id, f"Ежедневное задание {task_id} выполнено", module_name="racer_api")

    async def fetch_boosts(self, credential: str, account_id: int = 0) -> List[BoostState]:
        body = await self._request("GET", "boosts", credential, account_id=account_id)
        data = self._unwrap(body, "boosts")
        if not isinstance(data, list):
            raise RemoteAPIError("boosts: поле 'data' не является списком")
        return [BoostState.from_api(item) for item in data]

    async def purchase_boost(self, credential: str, boost_id: int, account_id: int = 0) -> bool:
        """Покупка буста. True, если сервер подтвердил покупку (code == 0)."""
        body = await self._request("POST", "boost", credential, {"id": int(boost_id)}, account_id=account_id)
        accepted = str(body.get("code")) == "0"
        if not accepted:
            log_warning(account_id, f"Покупка буста {boost_id} отклонена: {body.get('msg') or body.get('code')}",
                        module_name="racer_api")
        return accepted

    async def fetch_account_balance(self, credential: str, identity: CredentialIdentity) -> AccountInfo:
        payload = {
            "extUserId": identity.ext_user_id,
            "extUserName": identity.ext_user_name,
            "gameId": SystemConstants.GAME_ID,
            "linkCode": self.link_code,
        }
        body = await self._request("POST", "info", credential, payload, account_id=identity.ext_user_id)
        return AccountInfo.from_api(self._unwrap(body, "info"))

    async def submit_price_prediction(self, credential: str, identity: CredentialIdentity,
                                      direction: PredictionDirection, balance_before: float) -> RoundResult:
        payload = {
            "extUserId": identity.ext_user_id,
            "predict": int(direction),
            "gameId": SystemConstants.GAME_ID,
        }
        body = await self._request("POST", "assess", credential, payload, account_id=identity.ext_user_id)
        return RoundResult.from_api(self._unwrap(body, "assess"), direction, balance_before)

    async def fetch_reference_price(self, account_id: int = 0) -> float:
        """Последняя цена BTC-USDT с публичного тикера OKX."""
        url = f"{self.base_url}{self.TICKER_PATH}"
        params = {"instId": SystemConstants.TICKER_INSTRUMENT}

        await self._count_call("ticker")
        body = await retry_request(
            lambda: self._send("GET", url, {"Accept": "application/json"}, params=params),
            retries=self.retry_count, delay=self.retry_delay, clock=self.clock,
            account_id=account_id, description="GET ticker",
        )

        data = body.get("data")
        if not data or not isinstance(data, list) or data[0].get("last") is None:
            raise RemoteAPIError("ticker: в ответе нет цены")
        try:
            price = float(data[0]["last"])
        except (TypeError, ValueError):
            raise RemoteAPIError(f"ticker: некорректная цена {data[0]['last']!r}")
        log_debug(account_id, f"Цена {SystemConstants.TICKER_INSTRUMENT}: {price}", module_name="racer_api")
        return price
