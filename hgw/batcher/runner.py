"""Batcher registry -- one background scheduler task per (world, target).

Used by the HTTP API.  Schedulers started here run against the world in
loop-clock mode: the world loop advances time and the schedulers only
wait on it.
"""
import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import async_sessionmaker

from hgw.batcher.errors import BatcherSetupError
from hgw.batcher.inventory import PoolSpec
from hgw.batcher.scheduler import BaseScheduler, NaiveScheduler, ProtoBatcher
from hgw.config import BatcherConfig
from hgw.sim.engine import SimulationBackend

log = logging.getLogger(__name__)

VARIANTS: dict[str, type[BaseScheduler]] = {
    NaiveScheduler.variant: NaiveScheduler,
    ProtoBatcher.variant: ProtoBatcher,
}


def build_scheduler(
    backend: SimulationBackend,
    variant: str,
    target: str,
    pool: PoolSpec,
    config: BatcherConfig,
) -> BaseScheduler:
    try:
        scheduler_cls = VARIANTS[variant]
    except KeyError:
        raise BatcherSetupError(f"Unknown batcher variant {variant!r}") from None
    return scheduler_cls(backend, backend, target, pool, config)


@dataclass
class BatcherEntry:
    world_id: str
    scheduler: BaseScheduler
    task: asyncio.Task | None = None
    error: str | None = None

    def status(self) -> dict:
        running = self.task is not None and not self.task.done()
        return {
            "world_id": self.world_id,
            "running": running,
            "error": self.error,
            **self.scheduler.status(),
        }


class BatcherRunner:
    """Singleton registry of running batchers."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], BatcherEntry] = {}

    async def start(
        self,
        session_factory: async_sessionmaker,
        world_id: str,
        target: str,
        *,
        variant: str,
        pool: PoolSpec,
        config: BatcherConfig,
        drive_clock: bool = False,
    ) -> BatcherEntry:
        """Validate and start a batcher; raise ``BatcherSetupError`` on bad input."""
        key = (world_id, target)
        existing = self._entries.get(key)
        if existing and existing.task and not existing.task.done():
            raise BatcherSetupError(f"A batcher is already running against {target}")

        backend = SimulationBackend(session_factory, world_id, drive_clock=drive_clock)
        scheduler = build_scheduler(backend, variant, target, pool, config)
        await scheduler.setup()

        entry = BatcherEntry(world_id=world_id, scheduler=scheduler)
        entry.task = asyncio.create_task(self._run(entry))
        self._entries[key] = entry
        return entry

    async def _run(self, entry: BatcherEntry) -> None:
        try:
            await entry.scheduler.run()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            entry.error = f"{type(exc).__name__}: {exc}"
            log.exception("Batcher against %s crashed", entry.scheduler.target)

    def list(self, world_id: str) -> list[BatcherEntry]:
        return [e for (wid, _), e in self._entries.items() if wid == world_id]

    def get(self, world_id: str, target: str) -> BatcherEntry | None:
        return self._entries.get((world_id, target))

    async def stop(self, world_id: str, target: str) -> bool:
        """Cancel the batcher and forget it.  Dispatched workers keep running."""
        entry = self._entries.pop((world_id, target), None)
        if entry is None:
            return False
        await self._cancel(entry)
        log.info("Stopped batcher against %s", target)
        return True

    async def stop_all(self) -> None:
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            await self._cancel(entry)

    @staticmethod
    async def _cancel(entry: BatcherEntry) -> None:
        if entry.task is None:
            return
        entry.task.cancel()
        try:
            await entry.task
        except asyncio.CancelledError:
            pass


# Module-level singleton used by the API and the lifespan.
runner = BatcherRunner()
