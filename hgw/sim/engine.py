"""Simulation engine -- the database-backed world the batcher runs against.

``SimulationBackend`` implements both ``SimulationQuery`` and
``SimulationAction`` for one world.  Every call opens its own short-lived
session (the same pattern the world loop uses) so that concurrent
batchers always read state committed by the loop or by each other.

Process model:

* ``exec`` fixes a process's finish time at launch:
  ``now + duration(current target state) + additional_delay``.
* When the clock passes a finish time the process *settles*: its effect is
  applied to the target as the target is at that moment, and its RAM is
  released.  Processes settling in the same advance are applied in order of
  finish time, then pid.
* ``kill`` releases RAM without applying any effect.

Clock modes:

* driven (``drive_clock=True``) -- ``sleep(ms)`` advances the world clock
  itself.  Used by the CLI and the tests; fully deterministic.
* loop (``drive_clock=False``) -- the world loop advances the clock and
  ``sleep`` waits in real time until the clock has caught up.
"""
import asyncio
import logging
import math

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hgw.batcher.interfaces import OperationKind, ServerSnapshot, UnknownServerError
from hgw.batcher.workers import SCRIPTS_BY_NAME
from hgw.models.process import Process
from hgw.models.server import Server, ServerLink
from hgw.models.world import World
from hgw.sim import formulas as F

log = logging.getLogger(__name__)

# Real seconds between clock checks while sleeping in loop mode.
REAL_POLL_INTERVAL = 0.05


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_world(db: AsyncSession, world_id: str) -> World:
    world = await db.get(World, world_id)
    if world is None:
        raise ValueError(f"World {world_id} not found")
    return world


async def get_server(db: AsyncSession, world_id: str, hostname: str) -> Server:
    server = (
        await db.execute(
            select(Server).where(
                Server.world_id == world_id,
                Server.hostname == hostname,
            )
        )
    ).scalar_one_or_none()
    if server is None:
        raise UnknownServerError(f"No server named {hostname}")
    return server


def snapshot(server: Server) -> ServerSnapshot:
    return ServerSnapshot(
        hostname=server.hostname,
        is_home=server.is_home,
        is_purchased=server.is_purchased,
        has_root=server.has_root,
        required_hacking_level=server.required_hacking_level,
        max_ram=server.max_ram,
        ram_used=server.ram_used,
        max_money=server.max_money,
        money_available=server.money_available,
        min_security=server.min_security,
        security=server.security,
    )


def duration(kind: OperationKind, server: Server, hacking_level: int) -> float:
    """Current time-to-complete of *kind* against *server*."""
    args = (server.required_hacking_level, server.security, hacking_level)
    if kind == OperationKind.HACK:
        return F.hack_time(*args)
    if kind == OperationKind.GROW:
        return F.grow_time(*args)
    return F.weaken_time(*args)


# ---------------------------------------------------------------------------
# Clock and settlement
# ---------------------------------------------------------------------------


async def settle_processes(db: AsyncSession, world: World) -> list[Process]:
    """Apply every running process whose finish time has passed."""
    due = (
        await db.execute(
            select(Process)
            .where(
                Process.world_id == world.id,
                Process.is_running == True,  # noqa: E712
                Process.finish_at <= world.now_ms,
            )
            .order_by(Process.finish_at, Process.id)
        )
    ).scalars().all()

    for proc in due:
        target = await get_server(db, world.id, proc.target)
        proc.result = _apply_effect(world, proc, target)
        proc.is_running = False
        host = await get_server(db, world.id, proc.host)
        host.ram_used = _released(proc)
        log.debug(
            "pid %d %s x%d on %s -> %s settled (result=%.4f)",
            proc.id, proc.script, proc.threads, proc.host, proc.target, proc.result,
        )
    return list(due)


def _apply_effect(world: World, proc: Process, target: Server) -> float:
    kind = SCRIPTS_BY_NAME[proc.script].kind
    threads = proc.threads

    if kind == OperationKind.HACK:
        percent = F.hack_percent(
            target.required_hacking_level, target.security, world.hacking_level
        )
        stolen = math.floor(target.money_available * min(1.0, percent * threads))
        stolen = min(stolen, target.money_available)
        target.money_available -= stolen
        target.security = min(100.0, target.security + F.hack_security(threads))
        world.player_money += stolen
        return float(stolen)

    if kind == OperationKind.GROW:
        target.money_available = F.grown_money(
            target.money_available, target.max_money, threads, target.security, target.server_growth
        )
        target.security = min(100.0, target.security + F.grow_security(threads))
        return target.money_available

    before = target.security
    target.security = max(target.min_security, before - F.weaken_amount(threads))
    return before - target.security


def _released(proc: Process):
    # Evaluated by the database so concurrent sessions never lose an update.
    return func.max(0.0, Server.ram_used - proc.ram)


async def advance_world(db: AsyncSession, world: World, ms: float) -> list[Process]:
    """Move the clock forward by *ms* and settle finished processes."""
    if ms > 0:
        world.now_ms += ms
    return await settle_processes(db, world)


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------


class SimulationBackend:
    """Query and action surface of one world."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        world_id: str,
        *,
        drive_clock: bool = True,
    ) -> None:
        self._sessions = session_factory
        self.world_id = world_id
        self.drive_clock = drive_clock

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_server(self, host: str) -> ServerSnapshot:
        async with self._sessions() as db:
            return snapshot(await get_server(db, self.world_id, host))

    async def scan(self, host: str) -> list[str]:
        async with self._sessions() as db:
            server = await get_server(db, self.world_id, host)
            links = (
                await db.execute(
                    select(ServerLink).where(
                        ServerLink.world_id == self.world_id,
                        (ServerLink.source_id == server.id)
                        | (ServerLink.dest_id == server.id),
                    ).order_by(ServerLink.id)
                )
            ).scalars().all()
            neighbour_ids = [
                link.dest_id if link.source_id == server.id else link.source_id
                for link in links
            ]
            names = []
            for nid in neighbour_ids:
                neighbour = await db.get(Server, nid)
                names.append(neighbour.hostname)
            return names

    async def get_script_ram(self, script: str) -> float:
        worker = SCRIPTS_BY_NAME.get(script)
        return worker.ram if worker else 0.0

    async def get_hacking_level(self) -> int:
        async with self._sessions() as db:
            return (await get_world(db, self.world_id)).hacking_level

    async def get_time(self) -> float:
        async with self._sessions() as db:
            return (await get_world(db, self.world_id)).now_ms

    async def _duration(self, kind: OperationKind, target: str) -> float:
        async with self._sessions() as db:
            world = await get_world(db, self.world_id)
            server = await get_server(db, self.world_id, target)
            return duration(kind, server, world.hacking_level)

    async def get_hack_time(self, target: str) -> float:
        return await self._duration(OperationKind.HACK, target)

    async def get_grow_time(self, target: str) -> float:
        return await self._duration(OperationKind.GROW, target)

    async def get_weaken_time(self, target: str) -> float:
        return await self._duration(OperationKind.WEAKEN, target)

    async def hack_analyze(self, target: str) -> float:
        async with self._sessions() as db:
            world = await get_world(db, self.world_id)
            server = await get_server(db, self.world_id, target)
            return F.hack_percent(
                server.required_hacking_level, server.security, world.hacking_level
            )

    async def hack_analyze_threads(self, target: str, money: float) -> float:
        async with self._sessions() as db:
            world = await get_world(db, self.world_id)
            server = await get_server(db, self.world_id, target)
            percent = F.hack_percent(
                server.required_hacking_level, server.security, world.hacking_level
            )
            return F.hack_threads(money, server.money_available, percent)

    async def hack_analyze_security(self, threads: int) -> float:
        return F.hack_security(threads)

    async def growth_analyze_security(self, threads: int) -> float:
        return F.grow_security(threads)

    async def grow_threads(
        self, target: str, money: float, security: float | None = None
    ) -> int:
        async with self._sessions() as db:
            server = await get_server(db, self.world_id, target)
            return F.grow_threads(
                money,
                server.max_money,
                server.max_money,
                server.security if security is None else security,
                server.server_growth,
            )

    async def weaken_analyze(self, threads: int) -> float:
        return F.weaken_amount(threads)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def exec(
        self,
        script: str,
        host: str,
        threads: int,
        target: str,
        additional_delay: float = 0.0,
    ) -> int:
        """Start a worker; return its pid, or 0 when the host refuses it."""
        worker = SCRIPTS_BY_NAME.get(script)
        if worker is None or threads < 1:
            return 0
        async with self._sessions() as db:
            world = await get_world(db, self.world_id)
            try:
                server = await get_server(db, self.world_id, host)
                target_server = await get_server(db, self.world_id, target)
            except UnknownServerError:
                return 0
            if not server.has_root:
                return 0

            ram = worker.ram * threads
            if ram > server.max_ram - server.ram_used + 1e-9:
                log.debug("exec refused on %s: %.2f GB needed", host, ram)
                return 0

            duplicate = (
                await db.execute(
                    select(Process.id).where(
                        Process.world_id == self.world_id,
                        Process.is_running == True,  # noqa: E712
                        Process.host == host,
                        Process.script == script,
                        Process.target == target,
                        Process.additional_delay == float(additional_delay),
                    ).limit(1)
                )
            ).scalar_one_or_none()
            if duplicate is not None:
                return 0

            run_time = duration(worker.kind, target_server, world.hacking_level)
            proc = Process(
                world_id=self.world_id,
                host=host,
                script=script,
                threads=threads,
                target=target,
                additional_delay=float(additional_delay),
                ram=ram,
                started_at=world.now_ms,
                finish_at=world.now_ms + run_time + max(0.0, additional_delay),
            )
            db.add(proc)
            server.ram_used = Server.ram_used + ram
            await db.commit()
            return proc.id

    async def is_running(self, pid: int) -> bool:
        if not pid:
            return False
        async with self._sessions() as db:
            proc = await db.get(Process, pid)
            return bool(proc and proc.world_id == self.world_id and proc.is_running)

    async def kill(self, pid: int) -> bool:
        if not pid:
            return False
        async with self._sessions() as db:
            proc = await db.get(Process, pid)
            if proc is None or proc.world_id != self.world_id or not proc.is_running:
                return False
            proc.is_running = False
            proc.was_killed = True
            host = await get_server(db, self.world_id, proc.host)
            host.ram_used = _released(proc)
            await db.commit()
            log.debug("Killed pid %d on %s", pid, proc.host)
            return True

    async def nuke(self, host: str) -> bool:
        async with self._sessions() as db:
            world = await get_world(db, self.world_id)
            try:
                server = await get_server(db, self.world_id, host)
            except UnknownServerError:
                return False
            if server.has_root:
                return True
            if server.is_home or world.port_openers < server.ports_required:
                return False
            server.has_root = True
            await db.commit()
            log.info("Gained root access on %s", host)
            return True

    async def sleep(self, ms: float) -> None:
        if self.drive_clock:
            await self.advance(ms)
            await asyncio.sleep(0)
            return
        wake_at = await self.get_time() + ms
        while await self.get_time() < wake_at:
            await asyncio.sleep(REAL_POLL_INTERVAL)

    async def advance(self, ms: float) -> list[Process]:
        """Advance this world's clock (driven mode and tests)."""
        async with self._sessions() as db:
            world = await get_world(db, self.world_id)
            settled = await advance_world(db, world, ms)
            await db.commit()
            return settled
