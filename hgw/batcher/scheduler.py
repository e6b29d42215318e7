"""Batch scheduler -- the per-target state machine.

States::

    PREPPING --(target prepped)--> CYCLING --(clean cycle)--> STEADY
        ^                                                       |
        +------------------(target drifted)---------------------+

Two variants share the state machine:

``NaiveScheduler``
    One action in flight at a time.  Each cycle samples the target and
    picks weaken (security above ``min + tolerance``), grow (money below
    ``money_threshold`` of max) or hack, dispatches it across the pool and
    waits for every process to finish.  Nothing overlaps, so nothing can
    complete out of order.

``ProtoBatcher``
    Launches a weaken/grow/hack triple at once with additional delays so
    that hack lands first, grow ``gap`` ms later and weaken ``gap`` ms
    after that, then waits for the whole batch to clear.  If any leg of
    the batch cannot get all of its threads, the dispatched legs are
    killed, the target is re-prepped and the batch is retried; a partial
    batch would leave the target off its minimum security.

Ordering relies only on the delays computed from one snapshot of the
target.  If the target changes between the snapshot and the dispatch the
batch may land out of order; ``revalidate_before_dispatch`` narrows that
window by re-checking the target just before launch.
"""
import enum
import logging
import math
from dataclasses import dataclass, field

from hgw.batcher.errors import BatcherSetupError
from hgw.batcher.interfaces import (
    OperationKind,
    ServerSnapshot,
    SimulationAction,
    SimulationQuery,
    UnknownServerError,
)
from hgw.batcher.inventory import PoolSpec, ResourceInventory
from hgw.batcher.prep import PrepController, is_prepped
from hgw.batcher.tasks import Batch, Dispatcher, InFlightOperation, OperationRequest
from hgw.batcher.timing import DurationSnapshot, TimingOracle, batch_delays
from hgw.batcher.workers import WEAKEN_SCRIPT
from hgw.config import BatcherConfig

log = logging.getLogger(__name__)

# Launch order of the legs of a proto batch.
LAUNCH_ORDER = (OperationKind.WEAKEN, OperationKind.GROW, OperationKind.HACK)


class TargetState(str, enum.Enum):
    PREPPING = "prepping"
    CYCLING = "cycling"
    STEADY = "steady"


@dataclass
class SchedulerStats:
    cycles: int = 0
    batches: int = 0
    failed_batches: int = 0
    consecutive_failures: int = 0
    preps: int = 0
    money_stolen: float = 0.0
    threads: dict[str, int] = field(
        default_factory=lambda: {kind.value: 0 for kind in OperationKind}
    )

    def as_dict(self) -> dict:
        return {
            "cycles": self.cycles,
            "batches": self.batches,
            "failed_batches": self.failed_batches,
            "preps": self.preps,
            "money_stolen": self.money_stolen,
            "threads": dict(self.threads),
        }


class BaseScheduler:
    """Shared setup, prep transitions and run loop."""

    variant = "base"

    def __init__(
        self,
        query: SimulationQuery,
        action: SimulationAction,
        target: str,
        pool: PoolSpec,
        config: BatcherConfig,
    ) -> None:
        self.query = query
        self.action = action
        self.target = target
        self.pool = pool
        self.config = config
        self.inventory = ResourceInventory(query, config)
        self.oracle = TimingOracle(query)
        self.dispatcher = Dispatcher(query, action, self.inventory, self.oracle, config)
        self.prep_controller = PrepController(
            query, action, self.inventory, self.dispatcher, config
        )
        self.state = TargetState.PREPPING
        self.stats = SchedulerStats()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def setup(self) -> ServerSnapshot:
        """Validate the target and pool; raise ``BatcherSetupError`` if unusable."""
        if self.target == self.config.home:
            raise BatcherSetupError("Cannot target the home server")
        try:
            server = await self.query.get_server(self.target)
        except UnknownServerError as exc:
            raise BatcherSetupError(str(exc)) from exc
        if server.is_purchased:
            raise BatcherSetupError(f"{self.target} is a purchased server")
        if server.max_money <= 0:
            raise BatcherSetupError(f"{self.target} cannot hold any money")
        level = await self.query.get_hacking_level()
        if server.required_hacking_level > level:
            raise BatcherSetupError(
                f"{self.target} needs hacking level {server.required_hacking_level}, have {level}"
            )
        if not server.has_root and not await self.action.nuke(self.target):
            raise BatcherSetupError(f"No root access on {self.target}")
        hosts = await self.inventory.resolve(self.pool)
        if not hosts:
            raise BatcherSetupError("Worker pool is empty")
        return await self.query.get_server(self.target)

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def _transition(self, state: TargetState) -> None:
        if state != self.state:
            log.info("%s: %s -> %s", self.target, self.state.value, state.value)
            self.state = state

    async def reprep(self) -> None:
        """Synchronously prep the target, then resume cycling."""
        self._transition(TargetState.PREPPING)
        await self.prep_controller.prep(self.target, self.pool)
        self.stats.preps += 1
        self._transition(TargetState.CYCLING)

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def cycle(self) -> bool:
        raise NotImplementedError

    async def run(self, cycles: int | None = None) -> SchedulerStats:
        """Set up, prep, then cycle forever (or *cycles* times)."""
        await self.setup()
        log.info("Launch %s batcher against %s", self.variant, self.target)
        await self.reprep()
        done = 0
        while cycles is None or done < cycles:
            await self.cycle()
            self.stats.cycles += 1
            done += 1
            await self.action.sleep(0)
        return self.stats

    def _record_success(self, *ops: InFlightOperation, money: float = 0.0) -> None:
        for op in ops:
            self.stats.threads[op.request.kind.value] += op.threads
        self.stats.batches += 1
        self.stats.money_stolen += money
        self.stats.consecutive_failures = 0

    def _record_failure(self, reason: str) -> None:
        self.stats.failed_batches += 1
        self.stats.consecutive_failures += 1
        log.warning("%s: %s", self.target, reason)

    def status(self) -> dict:
        return {
            "target": self.target,
            "variant": self.variant,
            "state": self.state.value,
            **self.stats.as_dict(),
        }


# ---------------------------------------------------------------------------
# Naive scheduler
# ---------------------------------------------------------------------------


class NaiveScheduler(BaseScheduler):
    variant = "naive"

    def security_threshold(self, server: ServerSnapshot) -> float:
        return server.min_security + self.config.security_tolerance

    def money_threshold(self, server: ServerSnapshot) -> float:
        return server.max_money * self.config.money_threshold

    def decide(self, server: ServerSnapshot) -> OperationKind:
        """The dominant action for the target's current state."""
        if server.security > self.security_threshold(server):
            return OperationKind.WEAKEN
        if server.money_available < self.money_threshold(server):
            return OperationKind.GROW
        return OperationKind.HACK

    def has_drifted(self, server: ServerSnapshot) -> bool:
        # Money below the threshold is routine (the next cycle grows it);
        # security escaping the tolerance is not.
        return server.security > self.security_threshold(server)

    async def thread_count(self, kind: OperationKind, server: ServerSnapshot) -> int:
        if kind == OperationKind.WEAKEN:
            excess = server.security - server.min_security
            per_thread = await self.query.weaken_analyze(1)
            return max(1, math.ceil(round(excess / per_thread, 6)))
        if kind == OperationKind.GROW:
            return max(1, await self.query.grow_threads(self.target, server.money_available))
        money = math.floor(self.config.hack_fraction * server.max_money)
        threads = await self.query.hack_analyze_threads(self.target, money)
        if math.isinf(threads):
            return 0
        return max(1, math.floor(threads))

    async def cycle(self) -> bool:
        server = await self.query.get_server(self.target)
        if self.state == TargetState.STEADY and self.has_drifted(server):
            log.info("%s drifted (security %.3f), re-prepping", self.target, server.security)
            await self.reprep()
            server = await self.query.get_server(self.target)

        kind = self.decide(server)
        threads = await self.thread_count(kind, server)
        if threads <= 0:
            log.warning("%s: nothing to %s", self.target, kind.value)
            await self.action.sleep(self.config.retry_delay)
            return False

        hosts = await self.inventory.resolve(self.pool)
        op = await self.dispatcher.dispatch(
            OperationRequest(kind, self.target, threads), hosts
        )
        if not op.handles:
            self._record_failure(f"no capacity for {kind.value}")
            await self.action.sleep(self.config.retry_delay)
            return False
        if op.shortfall:
            log.warning(
                "%s: %s short by %d thread(s)", self.target, kind.value, op.shortfall
            )

        await self.dispatcher.wait(op)
        after = await self.query.get_server(self.target)
        stolen = 0.0
        if kind == OperationKind.HACK:
            stolen = max(0.0, server.money_available - after.money_available)
        self._record_success(op, money=stolen)

        if self.state == TargetState.CYCLING and not self.has_drifted(after):
            self._transition(TargetState.STEADY)
        return True


# ---------------------------------------------------------------------------
# Proto batcher
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BatchPlan:
    """Threads, durations and delays for one weaken/grow/hack triple."""

    threads: dict[OperationKind, int]
    durations: DurationSnapshot
    delays: dict[OperationKind, float]
    # Expected money taken by the hack leg from a prepped target.
    money: float = 0.0

    @property
    def total_threads(self) -> int:
        return sum(self.threads.values())

    def completion(self, kind: OperationKind, launched_at: float = 0.0) -> float:
        return launched_at + self.delays[kind] + self.durations.of(kind)


class ProtoBatcher(BaseScheduler):
    variant = "proto"

    async def plan(self, hack_threads: int) -> BatchPlan:
        """Threads for grow and weaken that undo *hack_threads* hack threads."""
        server = await self.query.get_server(self.target)
        percent = await self.query.hack_analyze(self.target)
        hacked = min(server.max_money, hack_threads * percent * server.max_money)
        hack_security = await self.query.hack_analyze_security(hack_threads)

        grow_threads = await self.query.grow_threads(
            self.target,
            server.max_money - hacked,
            server.security + hack_security,
        )
        grow_security = await self.query.growth_analyze_security(grow_threads)
        per_thread = await self.query.weaken_analyze(1)
        weaken_threads = math.ceil(round((hack_security + grow_security) / per_thread, 6))

        durations = await self.oracle.snapshot(self.target)
        return BatchPlan(
            threads={
                OperationKind.HACK: hack_threads,
                OperationKind.GROW: grow_threads,
                OperationKind.WEAKEN: weaken_threads,
            },
            durations=durations,
            delays=batch_delays(durations, self.config.batch_gap),
            money=math.floor(hacked),
        )

    async def size_batch(self, hosts: list[str]) -> BatchPlan | None:
        """The largest batch (by percent of max money stolen) that fits the pool.

        Searches from the configured fraction down to 1%.  Capacity is
        counted in weaken-script threads, the most expensive worker.
        """
        available = await self.inventory.total_capacity(hosts, WEAKEN_SCRIPT.name)
        server = await self.query.get_server(self.target)
        fraction = self.config.max_hack_fraction if self.config.greedy else self.config.hack_fraction
        for percent in range(math.floor(fraction * 100), 0, -1):
            money = percent / 100 * server.max_money
            threads = await self.query.hack_analyze_threads(self.target, money)
            if math.isinf(threads) or math.floor(threads) < 1:
                continue
            plan = await self.plan(math.floor(threads))
            if any(t < 1 for t in plan.threads.values()):
                continue
            if plan.total_threads <= available:
                return plan
        return None

    async def _still_valid(self, plan: BatchPlan) -> bool:
        server = await self.query.get_server(self.target)
        if not is_prepped(server):
            return False
        return await self.oracle.snapshot(self.target) == plan.durations

    async def launch(self) -> Batch | None:
        """Dispatch one batch; None (with everything killed) if it could not be launched whole."""
        hosts = await self.inventory.resolve(self.pool)
        plan = await self.size_batch(hosts)
        if plan is None:
            self._record_failure("pool too small for a single batch")
            return None
        if self.config.revalidate_before_dispatch and not await self._still_valid(plan):
            self._record_failure("target changed before dispatch")
            return None

        started = await self.query.get_time()
        batch = Batch(self.target, money=plan.money)
        for kind in LAUNCH_ORDER:
            # Time may pass between legs; take it out of the remaining delay.
            elapsed = await self.query.get_time() - started
            request = OperationRequest(
                kind,
                self.target,
                plan.threads[kind],
                max(0.0, plan.delays[kind] - elapsed),
            )
            op = await self.dispatcher.dispatch(request, hosts)
            batch.add(op)
            if op.shortfall:
                await batch.cancel()
                self._record_failure(
                    f"{kind.value} got {op.threads} of {request.threads} threads, batch aborted"
                )
                return None

        log.info(
            "Batch against %s: hack %d, grow %d, weaken %d threads",
            self.target,
            plan.threads[OperationKind.HACK],
            plan.threads[OperationKind.GROW],
            plan.threads[OperationKind.WEAKEN],
        )
        return batch

    async def cycle(self) -> bool:
        if not await self.prep_controller.is_prepped(self.target):
            if self.state == TargetState.STEADY:
                log.info("%s drifted out of prep, re-prepping", self.target)
            await self.reprep()

        batch = await self.launch()
        if batch is None:
            if self.stats.consecutive_failures >= self.config.max_failure:
                log.warning(
                    "%s: %d consecutive failed batches",
                    self.target, self.stats.consecutive_failures,
                )
                self.stats.consecutive_failures = 0
            await self.reprep()
            await self.action.sleep(self.config.retry_delay)
            return False

        await self.dispatcher.wait(batch, self.config.batch_poll_interval)
        self._record_success(*batch.operations, money=batch.money)

        if not await self.prep_controller.is_prepped(self.target):
            await self.reprep()
        elif self.stats.batches % self.config.batches_per_prep == 0:
            log.info("%s: %d batches done, periodic prep", self.target, self.stats.batches)
            await self.reprep()
        else:
            self._transition(TargetState.STEADY)
        return True
