"""Shared fixtures: fake clock, fake game API, fake refresher and fake reporting channel."""

import json
from collections import deque
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from urllib.parse import quote

import pytest

from core.clock import Clock
from core.enums import PredictionDirection
from core.exceptions import RefreshError, RemoteAPIError
from core.models import AccountInfo, BoostState, DailyTask, ReportingContext, RoundResult
from core.stats_reporter import StatsReporter
from storage.credential_store import CredentialStore


def make_credential(user_id: int, username: str = "") -> str:
    """Build init data the way the web app hands it out."""
    user = json.dumps({"id": user_id, "username": username or f"user{user_id}"})
    return f"query_id=AAH{user_id}&user={quote(user)}&auth_date=1700000000&hash=abc{user_id}"


class FakeClock(Clock):
    """Clock that advances instantly and records every wait."""

    def __init__(self):
        self.current = 0.0
        self.sleeps: List[float] = []
        self.on_sleep = None
        self.start = datetime(2026, 1, 1, 12, 0, 0)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += max(0.0, seconds)
        if self.on_sleep is not None:
            self.on_sleep(seconds)

    def monotonic(self) -> float:
        return self.current

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.current)

    def timestamp_ms(self) -> int:
        return 1_700_000_000_000 + int(self.current * 1000)


class FakeRacerAPI:
    """In-memory game server with the same surface as RacerAPI."""

    def __init__(self):
        self.tasks = [DailyTask(id=4, state=0)]
        self.boosts: Dict[int, BoostState] = {
            1: BoostState(id=1, name="Reload Fuel Tank", current_stage=2, total_stage=2, point_cost=0),
            2: BoostState(id=2, name="Fuel Tank", current_stage=1, total_stage=5, point_cost=100),
            3: BoostState(id=3, name="Turbo Charger", current_stage=1, total_stage=5, point_cost=200),
        }
        self.balance = 1000.0
        # (won, base_points, multiplier, remaining_chances)
        self.rounds = deque()
        self.prices = deque()
        self.failing = set()
        self.daily_error: Optional[Exception] = None
        self.accept_purchases = True
        self.advance_on_purchase = True

        self.claimed: List[int] = []
        self.purchases: List[int] = []
        self.predictions: List[PredictionDirection] = []
        self.processed: List[str] = []

    def _check(self, credential: str):
        if credential in self.failing:
            raise RemoteAPIError("token expired", http_status=401)

    async def fetch_daily_tasks(self, credential, account_id=0):
        self._check(credential)
        if self.daily_error is not None:
            raise self.daily_error
        return [replace(t) for t in self.tasks]

    async def claim_daily_task(self, credential, identity, task_id):
        self._check(credential)
        self.claimed.append(task_id)
        self.tasks = [replace(t, state=1) if t.id == task_id else t for t in self.tasks]

    async def fetch_boosts(self, credential, account_id=0):
        self._check(credential)
        self.processed.append(credential)
        return [replace(b) for b in self.boosts.values()]

    async def purchase_boost(self, credential, boost_id, account_id=0):
        self._check(credential)
        self.purchases.append(boost_id)
        if not self.accept_purchases:
            return False
        boost = self.boosts[boost_id]
        if self.advance_on_purchase:
            self.boosts[boost_id] = replace(boost, current_stage=boost.current_stage + 1)
        if boost_id != 1:
            self.balance -= boost.point_cost
        return True

    async def fetch_account_balance(self, credential, identity):
        self._check(credential)
        return AccountInfo(balance_points=self.balance)

    async def submit_price_prediction(self, credential, identity, direction, balance_before):
        self._check(credential)
        self.predictions.append(direction)
        won, base, multiplier, chances = self.rounds.popleft() if self.rounds else (True, 10, 1, 0)
        delta = base * multiplier
        self.balance += delta if won else -delta
        return RoundResult(
            predicted=direction, won=won, multiplier=multiplier, base_points=base,
            balance_before=balance_before, balance_after=self.balance, remaining_chances=chances,
        )

    async def fetch_reference_price(self, account_id=0):
        return self.prices.popleft() if self.prices else 100.0


class FakeRefresher:
    """Hands out fresh credentials per session handle."""

    def __init__(self, handles: List[str]):
        self.handles = list(handles)
        self.calls: List[str] = []
        self.broken = set()
        self._counter = 0

    def list_session_handles(self) -> List[str]:
        return list(self.handles)

    async def refresh(self, handle: str) -> str:
        self.calls.append(handle)
        if handle in self.broken:
            raise RefreshError(f"session {handle} is not authorized")
        self._counter += 1
        return make_credential(9000 + self._counter, f"fresh{self._counter}")


class FakeChannel:
    """Records status messages instead of talking to Telegram."""

    def __init__(self):
        self.sent: List[tuple] = []
        self.edited: List[tuple] = []
        self.fail_edit = False
        self.fail_send = False
        self._next_id = 100

    async def send_message(self, chat_id, text):
        if self.fail_send:
            raise RuntimeError("network down")
        self._next_id += 1
        self.sent.append((chat_id, text))
        return self._next_id

    async def edit_message(self, chat_id, message_id, text):
        if self.fail_edit:
            raise RuntimeError("message to edit not found")
        self.edited.append((chat_id, message_id, text))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_api():
    return FakeRacerAPI()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def context():
    return ReportingContext()


@pytest.fixture
def reporter(context, channel, clock):
    return StatsReporter(context, channel=channel, clock=clock, update_interval=300)


@pytest.fixture
def store(tmp_path):
    return CredentialStore(str(tmp_path / "data.txt"))
