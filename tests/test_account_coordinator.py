"""Tests for the outer account cycle and dead-credential replacement."""

import pytest

from coordinator.account_coordinator import AccountCoordinator, handle_for_slot, populate_store
from core.exceptions import StorageError
from core.models import UpgradeOptions
from core.stats_reporter import StatsReporter
from storage.credential_store import CredentialStore
from strategies.account_workflow import AccountWorkflow
from tests.conftest import FakeRefresher, make_credential


def make_coordinator(store, fake_api, reporter, context, clock, refresher):
    workflow = AccountWorkflow(fake_api, reporter, UpgradeOptions(), clock=clock,
                               price_sample_interval=4, chance_delay=1, boost_cooldown=5)
    return AccountCoordinator(store, refresher, workflow, reporter, context, clock=clock,
                              cycle_cooldown=300, inactive_poll_interval=60)


def write_store(store, credentials):
    store.path.write_text("".join(f"{c}\n" for c in credentials), encoding="utf-8")


@pytest.mark.parametrize("handle_count", [1, 2, 3, 5])
def test_cyclic_handle_mapping(handle_count):
    handles = [f"session_{n}.session" for n in range(handle_count)]

    for slot in range(12):
        assert handle_for_slot(handles, slot) == handles[slot % handle_count]


def test_no_handles_maps_to_none():
    assert handle_for_slot([], 3) is None


@pytest.mark.asyncio
async def test_pass_binds_credentials_to_handles_cyclically(store, fake_api, reporter, context, clock):
    write_store(store, [make_credential(n) for n in range(5)])
    refresher = FakeRefresher(["h0", "h1"])
    coordinator = make_coordinator(store, fake_api, reporter, context, clock, refresher)

    summary = await coordinator.run_pass()

    assert summary.handles_used == ["h0", "h1", "h0", "h1", "h0"]
    assert summary.completed == 5
    assert refresher.calls == []


@pytest.mark.asyncio
async def test_dead_credential_is_removed_and_replaced(store, fake_api, reporter, context, clock):
    a, b, c = make_credential(1), make_credential(2), make_credential(3)
    write_store(store, [a, b, c])
    fake_api.failing.add(b)
    refresher = FakeRefresher(["h0", "h1"])
    coordinator = make_coordinator(store, fake_api, reporter, context, clock, refresher)

    summary = await coordinator.run_pass()

    persisted = store.load()
    assert b not in persisted
    assert refresher.calls == ["h1"]
    assert persisted[0] == a and persisted[2] == c
    assert persisted[1] != b
    assert summary.failed == 1
    assert summary.replaced == 1
    # the replacement is processed at the end of the same pass
    assert fake_api.processed[-1] == persisted[1]
    assert summary.completed == 3
    assert reporter.stats.errors_count >= 1


@pytest.mark.asyncio
async def test_refresh_error_leaves_slot_empty(store, fake_api, reporter, context, clock):
    a, b = make_credential(1), make_credential(2)
    write_store(store, [a, b])
    fake_api.failing.add(a)
    refresher = FakeRefresher(["h0"])
    refresher.broken.add("h0")
    coordinator = make_coordinator(store, fake_api, reporter, context, clock, refresher)

    summary = await coordinator.run_pass()

    assert store.load() == [b]
    assert refresher.calls == ["h0"]
    assert summary.replaced == 0
    assert summary.completed == 1


@pytest.mark.asyncio
async def test_slot_is_replaced_at_most_once_per_pass(store, fake_api, reporter, context, clock):
    a = make_credential(1)
    write_store(store, [a])
    fake_api.failing.add(a)
    # every replacement this refresher hands out
    fake_api.failing.update(make_credential(9000 + n, f"fresh{n}") for n in range(1, 5))
    refresher = FakeRefresher(["h0"])
    coordinator = make_coordinator(store, fake_api, reporter, context, clock, refresher)

    summary = await coordinator.run_pass()

    assert summary.processed == 2
    assert summary.failed == 2
    assert refresher.calls == ["h0", "h0"]
    assert store.load() == [make_credential(9002, "fresh2")]


@pytest.mark.asyncio
async def test_populate_store_appends_unique_tokens(store):
    refresher = FakeRefresher(["h0", "h1", "h2"])
    refresher.broken.add("h1")

    added = await populate_store(store, refresher)

    assert added == 2
    assert len(store.load()) == 2
    assert refresher.calls == ["h0", "h1", "h2"]


@pytest.mark.asyncio
async def test_inactive_cycle_only_waits(store, fake_api, reporter, context, clock):
    refresher = FakeRefresher(["h0"])
    coordinator = make_coordinator(store, fake_api, reporter, context, clock, refresher)

    result = await coordinator.run_cycle()

    assert result is None
    assert clock.sleeps == [60]
    assert refresher.calls == []


@pytest.mark.asyncio
async def test_stop_takes_effect_at_top_of_loop(store, fake_api, reporter, context, clock):
    coordinator = make_coordinator(store, fake_api, reporter, context, clock, FakeRefresher(["h0"]))
    clock.on_sleep = lambda seconds: coordinator.stop()

    await coordinator.run()

    assert clock.sleeps == [60]
    assert coordinator.is_running is False


@pytest.mark.asyncio
async def test_empty_store_end_to_end(store, fake_api, context, channel, clock):
    context.is_active = True
    context.chat_id = 42
    reporter = StatsReporter(context, channel=channel, clock=clock, update_interval=2)
    refresher = FakeRefresher(["session_main.session"])
    coordinator = make_coordinator(store, fake_api, reporter, context, clock, refresher)

    summary = await coordinator.run_cycle()

    assert refresher.calls == ["session_main.session"]
    assert len(store.load()) == 1
    assert summary.completed == 1
    assert fake_api.claimed == [4]
    assert len(fake_api.predictions) == 1
    assert len(channel.sent) + len(channel.edited) == 1
    assert clock.sleeps[-1] == 300


class ReadOnlyStore(CredentialStore):
    """Reads fine, but the file cannot be rewritten."""

    def remove_at(self, index):
        raise StorageError(f"Не удалось записать {self.path}: read-only file system")


@pytest.mark.asyncio
async def test_storage_error_during_replacement_stops_pass(tmp_path, fake_api, reporter, context, clock):
    store = ReadOnlyStore(str(tmp_path / "data.txt"))
    a, b = make_credential(1), make_credential(2)
    write_store(store, [a, b])
    fake_api.failing.add(a)
    refresher = FakeRefresher(["h0"])
    coordinator = make_coordinator(store, fake_api, reporter, context, clock, refresher)

    with pytest.raises(StorageError):
        await coordinator.run_pass()

    assert refresher.calls == []
    assert b not in fake_api.processed
    assert coordinator.passes_completed == 0
    assert store.load() == [a, b]


@pytest.mark.asyncio
async def test_storage_error_stops_coordinator_loop(tmp_path, fake_api, reporter, context, clock):
    store = ReadOnlyStore(str(tmp_path / "data.txt"))
    write_store(store, [make_credential(1)])
    fake_api.failing.add(make_credential(1))
    context.is_active = True
    coordinator = make_coordinator(store, fake_api, reporter, context, clock, FakeRefresher(["h0"]))

    with pytest.raises(StorageError):
        await coordinator.run()

    assert coordinator.is_running is False
    assert clock.sleeps == []
