"""Prep controller -- bring a target to minimum security and maximum money.

Four strategies, all ending in the same state:

* ``gw``  -- grow, then weaken; repeat until prepped.
* ``wg``  -- weaken, then grow; repeat until prepped.
* ``mgw`` -- grow until money is at maximum, then weaken until security
  is at minimum.
* ``mwg`` -- weaken until security is at minimum, then ``gw``.

They differ only in how quickly they converge.
"""
import logging
import math

from hgw.batcher.interfaces import OperationKind, ServerSnapshot, SimulationAction, SimulationQuery
from hgw.batcher.inventory import PoolSpec, ResourceInventory
from hgw.batcher.tasks import Dispatcher, OperationRequest
from hgw.config import PREP_STRATEGIES, BatcherConfig

log = logging.getLogger(__name__)

# Security is compared after rounding to this many decimals.
SECURITY_PRECISION = 4


def has_min_security(server: ServerSnapshot) -> bool:
    return round(server.security, SECURITY_PRECISION) <= round(
        server.min_security, SECURITY_PRECISION
    )


def has_max_money(server: ServerSnapshot) -> bool:
    return math.floor(server.money_available) >= math.floor(server.max_money)


def is_prepped(server: ServerSnapshot) -> bool:
    return has_min_security(server) and has_max_money(server)


class PrepController:
    def __init__(
        self,
        query: SimulationQuery,
        action: SimulationAction,
        inventory: ResourceInventory,
        dispatcher: Dispatcher,
        config: BatcherConfig,
    ) -> None:
        self.query = query
        self.action = action
        self.inventory = inventory
        self.dispatcher = dispatcher
        self.config = config
        # Actions completed since construction, for status reporting.
        self.actions_run = 0

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    async def is_prepped(self, target: str) -> bool:
        """Read-only: calling it twice without time passing gives the same answer."""
        return is_prepped(await self.query.get_server(target))

    async def has_min_security(self, target: str) -> bool:
        return has_min_security(await self.query.get_server(target))

    async def has_max_money(self, target: str) -> bool:
        return has_max_money(await self.query.get_server(target))

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def weaken(self, target: str, pool: PoolSpec) -> int:
        """Weaken *target* toward minimum security; return threads used."""
        server = await self.query.get_server(target)
        excess = server.security - server.min_security
        per_thread = await self.query.weaken_analyze(1)
        threads = math.ceil(round(excess / per_thread, 6)) if excess > 0 else 0
        return await self._run(OperationKind.WEAKEN, target, threads, pool)

    async def grow(self, target: str, pool: PoolSpec) -> int:
        """Grow *target* toward maximum money; return threads used."""
        server = await self.query.get_server(target)
        threads = await self.query.grow_threads(target, server.money_available)
        return await self._run(OperationKind.GROW, target, threads, pool)

    async def _run(self, kind: OperationKind, target: str, threads: int, pool: PoolSpec) -> int:
        if threads <= 0:
            return 0
        hosts = await self.inventory.resolve(pool)
        op = await self.dispatcher.dispatch(OperationRequest(kind, target, threads), hosts)
        if not op.handles:
            log.warning("Prep %s on %s: no capacity in pool, retrying", kind.value, target)
            await self.action.sleep(self.config.retry_delay)
            return 0
        await self.dispatcher.wait(op)
        self.actions_run += 1
        return op.threads

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    async def prep(self, target: str, pool: PoolSpec, strategy: str | None = None) -> None:
        """Run *strategy* (default: the configured one) until *target* is prepped."""
        strategy = (strategy or self.config.prep_strategy).lower()
        if strategy not in PREP_STRATEGIES:
            raise ValueError(f"Unknown prep strategy {strategy!r}")
        log.info("Prepping %s (strategy %s)", target, strategy)
        await getattr(self, f"_prep_{strategy}")(target, pool)
        log.info("%s is prepped", target)

    async def _prep_gw(self, target: str, pool: PoolSpec) -> None:
        while True:
            if not await self.has_max_money(target):
                await self.grow(target, pool)
            if not await self.has_min_security(target):
                await self.weaken(target, pool)
            if await self.is_prepped(target):
                return
            await self.action.sleep(0)

    async def _prep_wg(self, target: str, pool: PoolSpec) -> None:
        while True:
            if not await self.has_min_security(target):
                await self.weaken(target, pool)
            if not await self.has_max_money(target):
                await self.grow(target, pool)
            if await self.is_prepped(target):
                return
            await self.action.sleep(0)

    async def _prep_mgw(self, target: str, pool: PoolSpec) -> None:
        while not await self.has_max_money(target):
            await self.grow(target, pool)
            await self.action.sleep(0)
        while not await self.has_min_security(target):
            await self.weaken(target, pool)
            await self.action.sleep(0)

    async def _prep_mwg(self, target: str, pool: PoolSpec) -> None:
        while not await self.has_min_security(target):
            await self.weaken(target, pool)
            await self.action.sleep(0)
        await self._prep_gw(target, pool)
