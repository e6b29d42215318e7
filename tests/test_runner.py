"""Tests for the batcher registry and the command line."""
import asyncio

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conftest import make_world
from hgw import cli
from hgw.batcher.errors import BatcherSetupError
from hgw.batcher.inventory import HostPool
from hgw.batcher.runner import BatcherRunner, build_scheduler
from hgw.batcher.scheduler import NaiveScheduler, ProtoBatcher
from hgw.config import BatcherConfig


# ── Registry ─────────────────────────────────────────────────────────────────

def test_build_scheduler_variants():
    config = BatcherConfig()
    assert isinstance(build_scheduler(None, "naive", "t", HostPool.GENERAL, config), NaiveScheduler)
    assert isinstance(build_scheduler(None, "proto", "t", HostPool.GENERAL, config), ProtoBatcher)
    with pytest.raises(BatcherSetupError):
        build_scheduler(None, "shotgun", "t", HostPool.GENERAL, config)


@pytest.mark.asyncio
async def test_runner_start_and_stop(file_engine):
    sessions = async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)
    sim = await make_world(sessions, purchased=2, purchased_ram=128)
    runner = BatcherRunner()

    entry = await runner.start(
        sessions, sim.world_id, "n00dles",
        variant="proto", pool=HostPool.DEDICATED, config=BatcherConfig(),
        drive_clock=True,
    )
    assert runner.get(sim.world_id, "n00dles") is entry
    with pytest.raises(BatcherSetupError):
        await runner.start(
            sessions, sim.world_id, "n00dles",
            variant="naive", pool=HostPool.GENERAL, config=BatcherConfig(),
        )

    # Let it make some progress on its own clock.
    for _ in range(50):
        await asyncio.sleep(0.01)
    assert entry.status()["running"] is True
    assert await sim.get_time() > 0

    assert await runner.stop(sim.world_id, "n00dles")
    assert not await runner.stop(sim.world_id, "n00dles")
    assert runner.list(sim.world_id) == []


@pytest.mark.asyncio
async def test_runner_refuses_bad_target(file_engine):
    sessions = async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)
    sim = await make_world(sessions)
    runner = BatcherRunner()
    with pytest.raises(BatcherSetupError):
        await runner.start(
            sessions, sim.world_id, "home",
            variant="naive", pool=HostPool.GENERAL, config=BatcherConfig(),
        )
    assert runner.list(sim.world_id) == []


@pytest.mark.asyncio
async def test_stop_all(file_engine):
    sessions = async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)
    sim = await make_world(sessions, purchased=2, purchased_ram=128)
    runner = BatcherRunner()
    await runner.start(
        sessions, sim.world_id, "n00dles",
        variant="naive", pool=HostPool.DEDICATED, config=BatcherConfig(),
    )
    await runner.stop_all()
    assert runner.list(sim.world_id) == []


# ── Command line ─────────────────────────────────────────────────────────────

def test_cli_proto(capsys):
    assert cli.main(["proto", "n00dles", "0.5", "2"]) == 0
    out = capsys.readouterr().out
    assert "proto batcher against n00dles" in out
    assert "batches:       2 (0 failed)" in out


def test_cli_naive(capsys):
    assert cli.main(["naive", "general", "joesguns", "3"]) == 0
    assert "naive batcher against joesguns" in capsys.readouterr().out


def test_cli_prep(capsys):
    assert cli.main(["prep", "joesguns", "mwg"]) == 0
    assert "joesguns prepped" in capsys.readouterr().out


def test_cli_setup_error(capsys):
    assert cli.main(["proto", "home", "0.5", "1"]) == 2
    assert "setup error" in capsys.readouterr().err


def test_cli_rejects_bad_arguments():
    with pytest.raises(SystemExit):
        cli.main(["prep", "joesguns", "hw"])
    with pytest.raises(SystemExit):
        cli.main(["proto", "n00dles", "0.5", "0"])
    with pytest.raises(SystemExit):
        cli.main(["proto", "n00dles"])


def test_cli_proto_takes_a_steal_fraction():
    args = cli.parse_args(["proto", "n00dles", "0.25"])
    assert args.percent_to_steal == 0.25
    assert args.cycles is None
    assert cli.parse_args(["proto", "n00dles", "1", "3"]).cycles == 3


@pytest.mark.parametrize("fraction", ["0", "-0.1", "1.5", "nan", "half"])
def test_cli_rejects_steal_fraction_out_of_range(fraction):
    with pytest.raises(SystemExit):
        cli.parse_args(["proto", "n00dles", fraction])


def test_cli_proto_steals_less_with_a_smaller_fraction(capsys):
    def stolen(fraction: str) -> int:
        assert cli.main(["proto", "n00dles", fraction, "1"]) == 0
        line = next(
            row for row in capsys.readouterr().out.splitlines() if "money stolen" in row
        )
        return int(line.split(":")[1].strip().replace(",", ""))

    assert 0 < stolen("0.1") < stolen("0.5")
