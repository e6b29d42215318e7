"""Tests for the prep controller."""
import pytest

from hgw.batcher.interfaces import ServerSnapshot
from hgw.batcher.inventory import HostPool, ResourceInventory
from hgw.batcher.prep import PrepController, has_max_money, has_min_security, is_prepped
from hgw.batcher.tasks import Dispatcher
from hgw.batcher.timing import TimingOracle
from hgw.config import PREP_STRATEGIES


# ── Helpers ──────────────────────────────────────────────────────────────────

def _controller(sim, config) -> PrepController:
    inventory = ResourceInventory(sim, config)
    dispatcher = Dispatcher(sim, sim, inventory, TimingOracle(sim), config)
    return PrepController(sim, sim, inventory, dispatcher, config)


def _snapshot(**overrides) -> ServerSnapshot:
    fields = dict(
        hostname="t", is_home=False, is_purchased=False, has_root=True,
        required_hacking_level=1, max_ram=0, ram_used=0,
        max_money=1000.0, money_available=1000.0, min_security=5.0, security=5.0,
    )
    fields.update(overrides)
    return ServerSnapshot(**fields)


# ── Checks ───────────────────────────────────────────────────────────────────

def test_prepped_checks_round_security():
    assert has_min_security(_snapshot(security=5.00000001))
    assert not has_min_security(_snapshot(security=5.001))


def test_prepped_checks_floor_money():
    assert has_max_money(_snapshot(money_available=999.5, max_money=999.9))
    assert not has_max_money(_snapshot(money_available=998.9))
    assert is_prepped(_snapshot())
    assert not is_prepped(_snapshot(security=6.0))


@pytest.mark.asyncio
async def test_is_prepped_is_read_only(sim, config):
    controller = _controller(sim, config)
    first = await controller.is_prepped("joesguns")
    second = await controller.is_prepped("joesguns")
    assert first is second is False
    assert await sim.get_time() == 0.0


# ── Strategies ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("strategy", PREP_STRATEGIES)
async def test_every_strategy_reaches_prepped(sim, config, strategy):
    controller = _controller(sim, config)
    await controller.prep("joesguns", HostPool.GENERAL, strategy)

    server = await sim.get_server("joesguns")
    assert is_prepped(server)
    assert controller.actions_run > 0
    # Prep waits for its own workers.
    for host in await controller.inventory.list_hosts(HostPool.GENERAL):
        assert (await sim.get_server(host)).ram_used == pytest.approx(0.0)


@pytest.mark.asyncio
async def test_prep_on_prepped_target_does_nothing(sim, config):
    controller = _controller(sim, config)
    await controller.prep("joesguns", HostPool.DEDICATED, "mwg")
    actions = controller.actions_run
    now = await sim.get_time()

    await controller.prep("joesguns", HostPool.DEDICATED, "mwg")
    assert controller.actions_run == actions
    assert await sim.get_time() == now


@pytest.mark.asyncio
async def test_unknown_strategy(sim, config):
    with pytest.raises(ValueError):
        await _controller(sim, config).prep("joesguns", HostPool.GENERAL, "hw")


@pytest.mark.asyncio
async def test_weaken_alone(sim, config):
    controller = _controller(sim, config)
    before = await sim.get_server("joesguns")
    # 200 threads wanted, two 128 GB servers hold 146 of them.
    threads = await controller.weaken("joesguns", ["pserv-0", "pserv-1"])
    assert threads == 146
    after = await sim.get_server("joesguns")
    assert after.security == pytest.approx(before.security - 146 * 0.05)
    assert not await controller.has_min_security("joesguns")

    await controller.weaken("joesguns", ["pserv-0", "pserv-1"])
    assert await controller.has_min_security("joesguns")
    assert not await controller.has_max_money("joesguns")
