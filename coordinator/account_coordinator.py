"""
Account Coordinator - внешний цикл по всем аккаунтам

Проходит по токенам из хранилища строго по одному, привязывает каждый токен
к Telegram-сессии по кругу и заменяет мёртвые токены новыми.
"""
from collections import deque
from typing import Deque, List, Optional, Set

from core.clock import Clock, system_clock
from core.enums import AccountOutcome, StatsEventKind
from core.exceptions import CredentialDecodeError, RefreshError
from core.functions import mask_credential
from core.interfaces import CredentialRefresher
from core.logger import log_error, log_info, log_warning
from core.models import PassSummary, ReportingContext, WorkItem, decode_credential
from core.stats_reporter import StatsReporter
from storage.credential_store import CredentialStore
from strategies.account_workflow import AccountWorkflow


def handle_for_slot(handles: List[str], slot: int) -> Optional[str]:
    """Сессия для позиции slot: handles[slot mod len(handles)]"""
    if not handles:
        return None
    return handles[slot % len(handles)]


def _account_id(credential: str) -> int:
    try:
        return decode_credential(credential).ext_user_id
    except CredentialDecodeError:
        return 0


async def populate_store(store: CredentialStore, refresher: CredentialRefresher,
                         handles: Optional[List[str]] = None) -> int:
    """
    Получает токен для каждой сессии и добавляет новые в хранилище.

    Returns:
        Количество добавленных токенов
    """
    handles = refresher.list_session_handles() if handles is None else handles
    if not handles:
        log_warning(0, "Нет ни одной сессии для получения токенов", "Coordinator")
        return 0

    added = 0
    for handle in handles:
        try:
            credential = await refresher.refresh(handle)
        except RefreshError as e:
            log_error(0, f"Не удалось получить токен для сессии {handle}: {e}", "Coordinator")
            continue

        if store.append(credential):
            added += 1
            log_info(0, f"Токен сессии {handle} сохранён", "Coordinator")
        else:
            log_info(0, f"Токен сессии {handle} уже есть в хранилище", "Coordinator")

    store.load()
    return added


class AccountCoordinator:
    """
    Координатор прохода по аккаунтам.

    Ключевые принципы:
    1. Аккаунты обрабатываются последовательно, один за другим
    2. Упавший аккаунт удаляется из хранилища сразу, до получения замены
    3. Замена попадает в конец очереди текущего прохода (не более одной замены на слот)
    4. Остановка срабатывает только между проходами
    """

    def __init__(self, store: CredentialStore, refresher: CredentialRefresher, workflow: AccountWorkflow,
                 reporter: StatsReporter, context: ReportingContext, clock: Clock = system_clock,
                 cycle_cooldown: float = 5 * 60, inactive_poll_interval: float = 60):
        self.store = store
        self.refresher = refresher
        self.workflow = workflow
        self.reporter = reporter
        self.context = context
        self.clock = clock
        self.cycle_cooldown = cycle_cooldown
        self.inactive_poll_interval = inactive_poll_interval

        self.running = False
        self.passes_completed = 0

    @property
    def is_running(self) -> bool:
        return self.running

    async def run(self):
        """Главный цикл до вызова stop()"""
        self.running = True
        log_info(0, "🟢 Координатор аккаунтов запущен", "Coordinator")
        try:
            while self.running:
                await self.run_cycle()
        finally:
            self.running = False
            log_info(0, "🔴 Координатор аккаунтов остановлен", "Coordinator")

    def stop(self):
        """Запрос остановки. Срабатывает в начале следующей итерации."""
        self.running = False

    async def run_cycle(self) -> Optional[PassSummary]:
        """Одна итерация: проход по аккаунтам и пауза, либо ожидание активации."""
        if not self.context.is_active:
            await self.clock.sleep(self.inactive_poll_interval)
            return None

        summary = await self.run_pass()
        log_info(0, f"Все аккаунты обработаны, следующий проход через {int(self.cycle_cooldown // 60)} мин.",
                 "Coordinator")
        await self.clock.sleep(self.cycle_cooldown)
        return summary

    async def run_pass(self) -> PassSummary:
        """
        Один проход по всем токенам хранилища.

        Raises:
            StorageError: хранилище недоступно (фатально)
        """
        summary = PassSummary()
        handles = self.refresher.list_session_handles()

        credentials = self.store.load()
        if not credentials:
            log_info(0, "Хранилище токенов пустое, получаем токены по всем сессиям", "Coordinator")
            await populate_store(self.store, self.refresher, handles)
            credentials = self.store.load()

        queue: Deque[WorkItem] = deque(WorkItem(slot, credential) for slot, credential in enumerate(credentials))
        replaced_slots: Set[int] = set()

        while queue:
            item = queue.popleft()
            handle = handle_for_slot(handles, item.slot)
            summary.processed += 1
            if handle is not None:
                summary.handles_used.append(handle)

            try:
                outcome = await self.workflow.run(item.credential)
            except Exception as e:
                summary.failed += 1
                await self._handle_failure(item, handle, e, queue, replaced_slots, summary)
                continue

            if outcome is AccountOutcome.SOFT_STOP:
                summary.soft_stopped += 1
            else:
                summary.completed += 1

        self.passes_completed += 1
        log_info(0, f"Проход завершён: обработано {summary.processed}, успешно {summary.completed}, "
                    f"пропущено {summary.soft_stopped}, ошибок {summary.failed}, заменено {summary.replaced}",
                 "Coordinator")
        return summary

    async def _handle_failure(self, item: WorkItem, handle: Optional[str], error: Exception,
                              queue: Deque[WorkItem], replaced_slots: Set[int], summary: PassSummary):
        account_id = _account_id(item.credential)
        log_error(account_id, f"Ошибка обработки аккаунта {mask_credential(item.credential)} "
                              f"(слот {item.slot}): {error}", "Coordinator")
        await self.reporter.update(StatsEventKind.ERROR, {
            "type": type(error).__name__, "message": str(error), "account": account_id,
        })

        self.store.load()
        index = self.store.index_of(item.credential)
        if index is not None:
            self.store.remove_at(index)
        else:
            index = item.slot

        if handle is None:
            log_warning(account_id, "Нет сессий для замены токена, слот остаётся пустым", "Coordinator")
            return

        try:
            new_credential = await self.refresher.refresh(handle)
        except RefreshError as e:
            log_error(account_id, f"Не удалось заменить токен через сессию {handle}: {e}", "Coordinator")
            return

        inserted = self.store.insert_at(index, new_credential)
        self.store.load()
        if not inserted:
            return

        summary.replaced += 1
        if item.slot in replaced_slots:
            log_warning(account_id, f"Слот {item.slot} уже заменялся в этом проходе, новый токен "
                                    f"будет обработан в следующем", "Coordinator")
            return

        replaced_slots.add(item.slot)
        queue.append(WorkItem(item.slot, new_credential, is_replacement=True))
        log_info(account_id, f"Токен заменён через сессию {handle} и добавлен в конец очереди", "Coordinator")
