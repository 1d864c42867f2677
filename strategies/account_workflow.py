# strategies/account_workflow.py
"""
Рабочий цикл одного аккаунта за проход:
ежедневное задание -> улучшения -> цикл ставок -> отметка активности.

Ошибки ежедневного задания учитываются в статистике и не прерывают цикл.
Любая другая ошибка пробрасывается координатору, который заменит токен.
"""
from typing import List, Optional, Tuple

from api.racer_api import RacerAPI
from core.clock import Clock, system_clock
from core.enums import AccountOutcome, BoostKind, PredictionDirection, StatsEventKind, SystemConstants
from core.functions import format_points
from core.logger import log_error, log_info, log_warning
from core.models import (
    BoostState, CredentialIdentity, UpgradeOptions, decode_credential, find_boost,
)
from core.stats_reporter import StatsReporter


def predict_direction(first_price: float, second_price: float) -> PredictionDirection:
    """
    SELL, если цена упала между замерами, иначе BUY.
    Равные цены дают BUY: третьего варианта у игры нет.
    """
    if first_price > second_price:
        return PredictionDirection.SELL
    return PredictionDirection.BUY


class AccountWorkflow:
    """Фиксированная последовательность шагов для одного токена"""

    def __init__(self, api: RacerAPI, reporter: StatsReporter,
                 upgrades: Optional[UpgradeOptions] = None, clock: Clock = system_clock,
                 price_sample_interval: float = 4, chance_delay: float = 1, boost_cooldown: float = 5):
        self.api = api
        self.reporter = reporter
        self.upgrades = upgrades or UpgradeOptions()
        self.clock = clock
        self.price_sample_interval = price_sample_interval
        self.chance_delay = chance_delay
        self.boost_cooldown = boost_cooldown

    async def run(self, credential: str) -> AccountOutcome:
        """
        Обрабатывает один токен.

        Returns:
            COMPLETED после цикла ставок, SOFT_STOP если улучшение не прошло проверку

        Raises:
            CredentialDecodeError, RemoteAPIError: аккаунт считается мёртвым
        """
        identity = decode_credential(credential)
        account_id = identity.ext_user_id
        log_info(account_id, f"========== Аккаунт {identity.ext_user_name or account_id} ==========",
                 module_name="account_workflow")

        await self._daily_check(credential, identity)

        boosts = await self.api.fetch_boosts(credential, account_id)
        for boost in boosts:
            log_info(account_id, f"{boost.name}: {boost.current_stage}/{boost.total_stage}",
                     module_name="account_workflow")

        if self.upgrades.fuel_tank:
            boosts, proceed = await self._evaluate_upgrade(credential, identity, boosts, BoostKind.FUEL_TANK)
            if not proceed:
                return AccountOutcome.SOFT_STOP

        if self.upgrades.turbo:
            boosts, proceed = await self._evaluate_upgrade(credential, identity, boosts, BoostKind.TURBO)
            if not proceed:
                return AccountOutcome.SOFT_STOP

        await self._betting_loop(credential, identity, boosts)

        await self.reporter.record_activity()
        return AccountOutcome.COMPLETED

    async def _daily_check(self, credential: str, identity: CredentialIdentity) -> None:
        account_id = identity.ext_user_id
        try:
            tasks = await self.api.fetch_daily_tasks(credential, account_id)
            check_in = next((t for t in tasks if t.id == SystemConstants.DAILY_CHECK_IN_TASK_ID), None)
            if check_in is None:
                log_warning(account_id, "Ежедневное задание отметки не найдено", module_name="account_workflow")
                return

            if check_in.is_unclaimed:
                await self.api.claim_daily_task(credential, identity, check_in.id)
                await self.reporter.update(StatsEventKind.DAILY_TASK, {"completed": True})
            else:
                log_info(account_id, "Ежедневное задание уже выполнено", module_name="account_workflow")
                await self.reporter.update(StatsEventKind.DAILY_TASK, {"completed": False})
        except Exception as e:
            await self.reporter.update(StatsEventKind.ERROR, {
                "type": "daily_check", "message": str(e), "account": account_id,
            })

    async def _evaluate_upgrade(self, credential: str, identity: CredentialIdentity,
                                boosts: List[BoostState], kind: BoostKind) -> Tuple[List[BoostState], bool]:
        """
        Покупает улучшение, если оно доступно.

        Returns:
            (актуальный список бустов, продолжать ли обработку аккаунта)
        """
        account_id = identity.ext_user_id
        boost = find_boost(boosts, kind)
        if boost is None:
            log_warning(account_id, f"Буст {kind.name} не найден", module_name="account_workflow")
            return boosts, True

        balance = (await self.api.fetch_account_balance(credential, identity)).balance_points
        if not boost.can_purchase(balance):
            log_info(account_id,
                     f"{boost.name}: улучшение недоступно (стадия {boost.current_stage}/{boost.total_stage}, "
                     f"баланс {format_points(balance)}, стоимость {format_points(boost.point_cost)})",
                     module_name="account_workflow")
            return boosts, True

        if await self.api.purchase_boost(credential, boost.id, account_id):
            await self.reporter.update(StatsEventKind.UPGRADE, {"type": kind.name.lower()})

        boosts = await self.api.fetch_boosts(credential, account_id)
        updated = find_boost(boosts, kind)
        balance_after = (await self.api.fetch_account_balance(credential, identity)).balance_points

        if (updated is None or updated.current_stage <= boost.current_stage
                or balance_after < boost.point_cost):
            log_warning(account_id, f"{boost.name}: улучшение не прошло, аккаунт пропускается до следующего прохода",
                        module_name="account_workflow")
            return boosts, False

        log_info(account_id, f"{boost.name} улучшен до стадии {updated.current_stage}/{updated.total_stage}",
                 module_name="account_workflow")
        return boosts, True

    async def _betting_loop(self, credential: str, identity: CredentialIdentity,
                            boosts: List[BoostState]) -> None:
        account_id = identity.ext_user_id
        refuel = find_boost(boosts, BoostKind.REFUEL)

        while True:
            first_price = await self.api.fetch_reference_price(account_id)
            await self.clock.sleep(self.price_sample_interval)
            second_price = await self.api.fetch_reference_price(account_id)
            direction = predict_direction(first_price, second_price)

            balance = (await self.api.fetch_account_balance(credential, identity)).balance_points
            log_info(account_id, f"Баланс: {format_points(balance)}", module_name="account_workflow")

            result = await self.api.submit_price_prediction(credential, identity, direction, balance)
            log_info(account_id,
                     f"Прогноз {direction.label} | {'Win' if result.won else 'Lose'} x{result.multiplier} | "
                     f"баланс {format_points(result.balance_after)}, изменение {format_points(result.points_delta)}, "
                     f"цена {result.prev_price} -> {result.current_price}",
                     module_name="account_workflow")

            await self.reporter.update(StatsEventKind.ACCOUNT_UPDATE, {
                "result": "Win" if result.won else "Lose",
                "balance_change": result.base_points * result.multiplier,
            })

            if result.remaining_chances > 0:
                await self.clock.sleep(self.chance_delay)
                continue

            if refuel is None or refuel.is_maxed:
                log_info(account_id, "Шансы закончились, заправок не осталось", module_name="account_workflow")
                break

            if not await self.api.purchase_boost(credential, refuel.id, account_id):
                log_error(account_id, "Заправка не удалась, цикл ставок завершён", module_name="account_workflow")
                break

            await self.reporter.update(StatsEventKind.BOOST_USE, {"type": "refuel"})
            await self.clock.sleep(self.boost_cooldown)
            boosts = await self.api.fetch_boosts(credential, account_id)
            refuel = find_boost(boosts, BoostKind.REFUEL)
