"""Command-line entry point.

    hgw naive <pool> <target> [cycles]
    hgw proto <target> <percent_to_steal> [cycles]
    hgw prep <target> [strategy]
    hgw serve

The batcher commands run against a freshly generated in-memory world whose
clock is driven by the batcher itself, so a run that would take hours of
simulated time finishes in seconds.  Without ``cycles`` they run until
interrupted.
"""
import argparse
import asyncio
import logging
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from hgw.batcher.errors import BatcherSetupError
from hgw.batcher.inventory import HostPool, ResourceInventory, nuke_network, parse_pool
from hgw.batcher.runner import build_scheduler
from hgw.batcher.scheduler import BaseScheduler
from hgw.config import PREP_STRATEGIES, settings
from hgw.database import init_db
from hgw.sim import constants as C
from hgw.sim.engine import SimulationBackend
from hgw.sim.world_generator import generate_world

log = logging.getLogger(__name__)

CLI_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# The generated world: strong enough to hack every money server, with
# purchased servers for the dedicated pool.
CLI_HACKING_LEVEL = max(s[2] for s in C.WORLD_SERVERS)
CLI_PORT_OPENERS = max(s[3] for s in C.WORLD_SERVERS)
CLI_PURCHASED = 4
CLI_PURCHASED_RAM = 256


def positive_int(value: str) -> int:
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return n


def steal_fraction(value: str) -> float:
    frac = float(value)
    if not 0 < frac <= 1:
        raise argparse.ArgumentTypeError("must be in (0, 1]")
    return frac


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="hgw", description="Hack/grow/weaken batch scheduler."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    naive = sub.add_parser("naive", help="One action at a time against a target.")
    naive.add_argument("pool", help="general, dedicated or host1,host2,...")
    naive.add_argument("target", help="Server to hack.")
    naive.add_argument("cycles", nargs="?", type=positive_int, default=None,
                       help="Stop after this many cycles.")

    proto = sub.add_parser("proto", help="Overlapping weaken/grow/hack batches on purchased servers.")
    proto.add_argument("target", help="Server to hack.")
    proto.add_argument("percent_to_steal", type=steal_fraction,
                       help="Fraction of max money to steal per hack, in (0, 1].")
    proto.add_argument("cycles", nargs="?", type=positive_int, default=None,
                       help="Stop after this many cycles.")

    prep = sub.add_parser("prep", help="Bring a target to minimum security and maximum money.")
    prep.add_argument("target", help="Server to prep.")
    prep.add_argument("strategy", nargs="?", choices=PREP_STRATEGIES, default=None,
                      help="Prep strategy (default from HGW_PREP_STRATEGY).")

    sub.add_parser("serve", help="Run the HTTP API.")
    return parser.parse_args(argv)


async def _make_world(sessions: async_sessionmaker) -> SimulationBackend:
    async with sessions() as db:
        world = await generate_world(
            db,
            "cli",
            seed=settings.WORLD_SEED,
            hacking_level=CLI_HACKING_LEVEL,
            port_openers=CLI_PORT_OPENERS,
            purchased=CLI_PURCHASED,
            purchased_ram=CLI_PURCHASED_RAM,
        )
        await db.commit()
        world_id = world.id
    log.info("Generated world %s (seed %s)", world_id, settings.WORLD_SEED)
    backend = SimulationBackend(sessions, world_id, drive_clock=True)
    await nuke_network(ResourceInventory(backend, settings.batcher_config()), backend)
    return backend


def _print_summary(scheduler: BaseScheduler, now_ms: float) -> None:
    status = scheduler.status()
    print(f"{status['variant']} batcher against {status['target']}: {status['state']}")
    print(f"  cycles:        {status['cycles']}")
    print(f"  batches:       {status['batches']} ({status['failed_batches']} failed)")
    print(f"  preps:         {status['preps']}")
    print(f"  money stolen:  {status['money_stolen']:,.0f}")
    threads = ", ".join(f"{k} {v}" for k, v in status["threads"].items())
    print(f"  threads:       {threads}")
    print(f"  simulated:     {now_ms / 1000:,.1f} s")


async def run_batcher(args: argparse.Namespace) -> int:
    engine = create_async_engine(CLI_DATABASE_URL, echo=False)
    await init_db(engine)
    sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        backend = await _make_world(sessions)
        if args.command == "proto":
            config = settings.batcher_config(hack_fraction=args.percent_to_steal)
        else:
            config = settings.batcher_config()

        if args.command == "prep":
            scheduler = build_scheduler(backend, "naive", args.target, HostPool.GENERAL, config)
            await scheduler.setup()
            controller = scheduler.prep_controller
            await controller.prep(args.target, HostPool.GENERAL, args.strategy)
            server = await backend.get_server(args.target)
            print(
                f"{args.target} prepped in {controller.actions_run} action(s): "
                f"security {server.security:.3f}/{server.min_security:.3f}, "
                f"money {server.money_available:,.0f}/{server.max_money:,.0f}"
            )
            return 0

        if args.command == "naive":
            pool = parse_pool(args.pool)
        else:
            pool = HostPool.DEDICATED
        scheduler = build_scheduler(backend, args.command, args.target, pool, config)
        await scheduler.run(args.cycles)
        _print_summary(scheduler, await backend.get_time())
        return 0
    finally:
        await engine.dispose()


def serve() -> int:
    import uvicorn

    uvicorn.run("hgw.main:app", host=settings.HOST, port=settings.PORT)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command == "serve":
        return serve()

    try:
        return asyncio.run(run_batcher(args))
    except BatcherSetupError as exc:
        print(f"setup error: {exc}", file=sys.stderr)
        return 2
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
