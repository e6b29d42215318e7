"""Tests for the simulation engine: exec, kill, settlement and the world loop."""
import pytest

from conftest import make_world
from hgw.models.process import Process
from hgw.models.world import World
from hgw.sim import formulas as F
from hgw.sim.world_loop import WorldLoop
from hgw.sim.world_generator import STARTING_MONEY_FRACTION, purchase_server


@pytest.mark.asyncio
async def test_generated_world(sim):
    home = await sim.get_server("home")
    assert home.is_home and home.has_root
    joes = await sim.get_server("joesguns")
    assert joes.money_available == pytest.approx(joes.max_money * STARTING_MONEY_FRACTION)
    assert joes.security > joes.min_security
    assert "CSEC" in await sim.scan("joesguns")
    assert "joesguns" in await sim.scan("CSEC")


@pytest.mark.asyncio
async def test_exec_refusals(sim):
    assert await sim.exec("weaken.py", "pserv-0", 1000, "n00dles") == 0  # RAM
    assert await sim.exec("weaken.py", "pserv-0", 0, "n00dles") == 0
    assert await sim.exec("unknown.py", "pserv-0", 1, "n00dles") == 0
    assert await sim.exec("weaken.py", "no-such-host", 1, "n00dles") == 0
    assert await sim.exec("weaken.py", "pserv-0", 1, "no-such-target") == 0


@pytest.mark.asyncio
async def test_exec_refused_without_root(session_factory):
    sim = await make_world(session_factory, nuke=False)
    assert await sim.exec("weaken.py", "foodnstuff", 1, "n00dles") == 0
    assert await sim.nuke("foodnstuff")
    assert await sim.exec("weaken.py", "foodnstuff", 1, "n00dles") > 0


@pytest.mark.asyncio
async def test_identical_process_refused(sim):
    """The same script, target and delay can only run once per host."""
    first = await sim.exec("grow.py", "pserv-0", 2, "n00dles", 100)
    assert first
    assert await sim.exec("grow.py", "pserv-0", 2, "n00dles", 100) == 0
    assert await sim.exec("grow.py", "pserv-0", 2, "n00dles", 101)
    assert await sim.exec("grow.py", "pserv-1", 2, "n00dles", 100)


@pytest.mark.asyncio
async def test_process_runs_to_completion(sim):
    server = await sim.get_server("joesguns")
    run_time = await sim.get_weaken_time("joesguns")
    pid = await sim.exec("weaken.py", "pserv-0", 20, "joesguns", 500)
    assert await sim.is_running(pid)
    assert (await sim.get_server("pserv-0")).ram_used == pytest.approx(35.0)

    await sim.sleep(run_time + 499)
    assert await sim.is_running(pid)
    await sim.sleep(2)
    assert not await sim.is_running(pid)

    after = await sim.get_server("joesguns")
    assert after.security == pytest.approx(server.security - F.weaken_amount(20))
    assert (await sim.get_server("pserv-0")).ram_used == pytest.approx(0.0)


@pytest.mark.asyncio
async def test_weaken_never_below_minimum(sim):
    pid = await sim.exec("weaken.py", "pserv-0", 70, "n00dles")
    await sim.sleep(await sim.get_weaken_time("n00dles"))
    assert not await sim.is_running(pid)
    server = await sim.get_server("n00dles")
    assert server.security == server.min_security


@pytest.mark.asyncio
async def test_kill_releases_ram_without_effect(sim):
    before = await sim.get_server("joesguns")
    pid = await sim.exec("weaken.py", "pserv-0", 20, "joesguns")
    assert await sim.kill(pid)
    assert not await sim.kill(pid)
    assert not await sim.is_running(pid)
    assert (await sim.get_server("pserv-0")).ram_used == pytest.approx(0.0)

    await sim.sleep(await sim.get_weaken_time("joesguns") + 1000)
    assert (await sim.get_server("joesguns")).security == before.security


@pytest.mark.asyncio
async def test_settlement_order_follows_finish_time(sim, session_factory):
    """A hack that finishes first steals from the ungrown balance."""
    grow_time = await sim.get_grow_time("n00dles")
    hack_time = await sim.get_hack_time("n00dles")
    money = (await sim.get_server("n00dles")).money_available
    percent = await sim.hack_analyze("n00dles")

    grow_pid = await sim.exec("grow.py", "pserv-0", 5, "n00dles")
    hack_pid = await sim.exec("hack.py", "pserv-1", 10, "n00dles", grow_time - hack_time - 50)
    # Settle both in one advance.
    await sim.advance(grow_time + 10)

    async with session_factory() as db:
        hack = await db.get(Process, hack_pid)
        grow = await db.get(Process, grow_pid)
        assert hack.finish_at < grow.finish_at
        assert hack.result == pytest.approx(int(money * percent * 10), abs=1)
        world = await db.get(World, sim.world_id)
        assert world.player_money > 1000


@pytest.mark.asyncio
async def test_purchase_server_limits(session_factory, db_session, sim):
    server = await purchase_server(db_session, sim.world_id, 64)
    assert server.hostname == "pserv-2"
    assert server.has_root and server.is_purchased
    with pytest.raises(ValueError):
        await purchase_server(db_session, sim.world_id, 64, "pserv-0")
    with pytest.raises(ValueError):
        await purchase_server(db_session, sim.world_id, 0)
    await db_session.commit()
    assert "pserv-2" in await sim.scan("home")


@pytest.mark.asyncio
async def test_world_loop_tick_advances_active_worlds(session_factory, sim):
    other = await make_world(session_factory)
    loop = WorldLoop(session_factory, tick_rate=5, time_scale=2.0)
    loop.speed_multiplier[other.world_id] = 0

    pid = await sim.exec("hack.py", "pserv-0", 1, "n00dles")
    await loop.tick()
    assert await sim.get_time() == pytest.approx(400.0)
    assert await other.get_time() == 0.0

    hack_time = await sim.get_hack_time("n00dles")
    for _ in range(int(hack_time // 400) + 1):
        await loop.tick()
    assert not await sim.is_running(pid)


@pytest.mark.asyncio
async def test_loop_mode_sleep_waits_for_clock(file_engine):
    import asyncio
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    from hgw.sim.engine import SimulationBackend

    session_factory = async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)
    sim = await make_world(session_factory)
    waiting = SimulationBackend(session_factory, sim.world_id, drive_clock=False)
    sleeper = asyncio.create_task(waiting.sleep(1000))
    await asyncio.sleep(0.1)
    assert not sleeper.done()
    await sim.advance(1000)
    await asyncio.wait_for(sleeper, timeout=2)
    assert await sim.get_time() == pytest.approx(1000.0)
