"""Timing oracle and batch delay planning.

Durations depend on the target's current security level, so they are
sampled fresh for every action and every batch, never cached.
"""
from dataclasses import dataclass

from hgw.batcher.interfaces import OperationKind, SimulationQuery


@dataclass(frozen=True)
class DurationSnapshot:
    hack: float
    grow: float
    weaken: float

    def of(self, kind: OperationKind) -> float:
        return getattr(self, OperationKind(kind).value)


class TimingOracle:
    def __init__(self, query: SimulationQuery) -> None:
        self.query = query

    async def duration(self, kind: OperationKind, target: str) -> float:
        """Milliseconds *kind* takes against *target* in its current state."""
        kind = OperationKind(kind)
        if kind == OperationKind.HACK:
            return await self.query.get_hack_time(target)
        if kind == OperationKind.GROW:
            return await self.query.get_grow_time(target)
        return await self.query.get_weaken_time(target)

    async def snapshot(self, target: str) -> DurationSnapshot:
        return DurationSnapshot(
            hack=await self.duration(OperationKind.HACK, target),
            grow=await self.duration(OperationKind.GROW, target),
            weaken=await self.duration(OperationKind.WEAKEN, target),
        )


def batch_delays(durations: DurationSnapshot, gap: float) -> dict[OperationKind, float]:
    """Additional delay per operation for a batch launched all at once.

    With every operation launched at the same instant, the delays make

        delay(w) + dur(w) == delay(g) + dur(g) + gap == delay(h) + dur(h) + 2 * gap

    so hack lands first, grow ``gap`` ms later and weaken ``gap`` ms after
    that.  All delays are non-negative; the slowest leg gets none.
    """
    end = max(
        durations.weaken,
        durations.grow + gap,
        durations.hack + 2 * gap,
    )
    return {
        OperationKind.WEAKEN: end - durations.weaken,
        OperationKind.GROW: end - gap - durations.grow,
        OperationKind.HACK: end - 2 * gap - durations.hack,
    }
