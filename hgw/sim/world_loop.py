"""Async world loop -- advances the clock of every active world.

The loop is started/stopped by the FastAPI lifespan handler and runs as a
background ``asyncio.Task``.  Each tick it:

1. Loads every active ``World`` from the database.
2. Advances its clock by ``TIME_SCALE`` x the tick interval, applying the
   per-world speed multiplier (paused=0, normal=1).
3. Settles every worker process whose finish time has passed.

Batchers started through the API never advance the clock themselves; they
sleep until this loop has carried the world past their wake-up time.
"""
import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from hgw.config import settings
from hgw.database import async_session

log = logging.getLogger(__name__)


class WorldLoop:
    """Singleton loop that drives simulated time."""

    def __init__(
        self,
        session_factory: async_sessionmaker | None = None,
        tick_rate: float | None = None,
        time_scale: float | None = None,
    ) -> None:
        self._sessions = session_factory or async_session
        self.tick_rate = tick_rate or settings.TICK_RATE
        self.time_scale = settings.TIME_SCALE if time_scale is None else time_scale
        self._running: bool = False
        self._task: asyncio.Task | None = None
        # Per-world speed multiplier.  Missing keys default to 1 (normal).
        self.speed_multiplier: dict[str, float] = {}
        self.tick_count: int = 0

    @property
    def tick_interval(self) -> float:
        return 1.0 / self.tick_rate

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the background tick loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        log.info("World loop started (%.0f Hz, time scale %.1f)", self.tick_rate, self.time_scale)

    async def stop(self) -> None:
        """Cancel the background tick loop and wait for it to finish."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        log.info("World loop stopped")

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def _loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.tick_interval)
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Unhandled error in world loop tick")

    async def tick(self) -> int:
        """Advance every active, unpaused world by one tick; return processes settled."""
        from hgw.models.world import World
        from hgw.sim.engine import advance_world

        self.tick_count += 1
        step = self.tick_interval * 1000 * self.time_scale
        settled = 0

        async with self._sessions() as db:
            worlds = (
                await db.execute(
                    select(World).where(World.is_active == True)  # noqa: E712
                )
            ).scalars().all()

            for world in worlds:
                speed = self.speed_multiplier.get(world.id, 1)
                if speed <= 0:
                    # World is paused -- skip it entirely.
                    continue
                settled += len(await advance_world(db, world, step * speed))

            await db.commit()

        if settled:
            log.debug("Tick %d settled %d process(es)", self.tick_count, settled)
        return settled


# Module-level singleton used by the lifespan and the API.
world_loop = WorldLoop()
