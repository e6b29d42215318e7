"""Dispatch of worker threads and tracking of in-flight operations.

Dispatch is fire-and-forget on the simulation side: a worker, once
started, runs to completion unless it is killed.  ``TaskHandle`` wraps a
single pid, ``InFlightOperation`` groups the processes of one request
across hosts, and ``Batch`` is a wait group over several operations.
"""
import logging
from dataclasses import dataclass, field
from typing import Sequence

from hgw.batcher.allocator import allocate_threads
from hgw.batcher.interfaces import OperationKind, SimulationAction, SimulationQuery
from hgw.batcher.inventory import ResourceInventory
from hgw.batcher.timing import TimingOracle
from hgw.batcher.workers import worker_for
from hgw.config import BatcherConfig

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationRequest:
    kind: OperationKind
    target: str
    threads: int
    additional_delay: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", OperationKind(self.kind))


class TaskHandle:
    """One dispatched worker process."""

    def __init__(self, action: SimulationAction, pid: int, host: str, threads: int) -> None:
        self.action = action
        self.pid = pid
        self.host = host
        self.threads = threads

    async def is_complete(self) -> bool:
        return not await self.action.is_running(self.pid)

    async def cancel(self) -> bool:
        """Kill the process; False if it had already finished."""
        return await self.action.kill(self.pid)

    def __repr__(self) -> str:
        return f"TaskHandle(pid={self.pid}, host={self.host!r}, threads={self.threads})"


@dataclass
class InFlightOperation:
    request: OperationRequest
    handles: list[TaskHandle]
    expected_completion: float

    @property
    def threads(self) -> int:
        """Threads actually dispatched (may be fewer than requested)."""
        return sum(h.threads for h in self.handles)

    @property
    def hosts(self) -> list[str]:
        return [h.host for h in self.handles]

    @property
    def shortfall(self) -> int:
        return max(0, self.request.threads - self.threads)

    async def is_complete(self) -> bool:
        for handle in self.handles:
            if not await handle.is_complete():
                return False
        return True

    async def cancel(self) -> int:
        killed = 0
        for handle in self.handles:
            if await handle.cancel():
                killed += 1
        return killed


@dataclass
class Batch:
    """Operations launched together against one target."""

    target: str
    operations: list[InFlightOperation] = field(default_factory=list)
    # Money the batch is expected to steal.
    money: float = 0.0

    def add(self, op: InFlightOperation) -> None:
        self.operations.append(op)

    @property
    def expected_completion(self) -> float:
        return max((op.expected_completion for op in self.operations), default=0.0)

    async def is_complete(self) -> bool:
        for op in self.operations:
            if not await op.is_complete():
                return False
        return True

    async def cancel(self) -> int:
        killed = 0
        for op in self.operations:
            killed += await op.cancel()
        if killed:
            log.info("Killed %d process(es) of an aborted batch against %s", killed, self.target)
        return killed


async def wait_for(
    query: SimulationQuery,
    action: SimulationAction,
    waitable: InFlightOperation | Batch,
    *,
    buffer: float,
    poll_interval: float,
) -> None:
    """Sleep until the expected completion (plus *buffer*), then poll until done."""
    remaining = waitable.expected_completion - await query.get_time()
    if remaining > 0:
        await action.sleep(remaining + buffer)
    while not await waitable.is_complete():
        await action.sleep(poll_interval)


class Dispatcher:
    """Turns an ``OperationRequest`` into running worker processes."""

    def __init__(
        self,
        query: SimulationQuery,
        action: SimulationAction,
        inventory: ResourceInventory,
        oracle: TimingOracle,
        config: BatcherConfig,
    ) -> None:
        self.query = query
        self.action = action
        self.inventory = inventory
        self.oracle = oracle
        self.config = config

    async def dispatch(
        self,
        request: OperationRequest,
        hosts: Sequence[str],
        *,
        split_remainder: bool = True,
    ) -> InFlightOperation:
        """Allocate hosts and start the worker for *request*.

        A host that refuses the worker (pid 0) contributes nothing; the
        returned operation reports what was actually started.
        """
        script = worker_for(request.kind)
        allotments = await allocate_threads(
            self.inventory, request.threads, script.name, hosts,
            split_remainder=split_remainder,
        )
        run_time = await self.oracle.duration(request.kind, request.target)
        now = await self.query.get_time()

        handles: list[TaskHandle] = []
        for allotment in allotments:
            pid = await self.action.exec(
                script.name,
                allotment.host,
                allotment.threads,
                request.target,
                request.additional_delay,
            )
            if not pid:
                log.debug(
                    "exec of %s x%d on %s failed", script.name, allotment.threads, allotment.host
                )
                continue
            handles.append(TaskHandle(self.action, pid, allotment.host, allotment.threads))

        op = InFlightOperation(
            request=request,
            handles=handles,
            expected_completion=now + run_time + request.additional_delay,
        )
        log.debug(
            "%s %s: %d/%d threads on %s",
            request.kind.value, request.target, op.threads, request.threads, op.hosts,
        )
        return op

    async def wait(self, waitable: InFlightOperation | Batch, poll_interval: float | None = None) -> None:
        await wait_for(
            self.query,
            self.action,
            waitable,
            buffer=self.config.buffer_time,
            poll_interval=poll_interval or self.config.poll_interval,
        )
