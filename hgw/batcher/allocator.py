"""Thread allocator -- greedy, most-capacity-first host selection.

Hosts are sorted by descending capacity and taken whole, and a host is
only taken if it keeps the running total at or under the requirement.
The result never exceeds the requirement; when the pool is short the
caller gets whatever could be assembled.  This is a bin-covering
heuristic, not an optimal packing: capacities ``[10, 7, 3]`` against a
requirement of 12 select only the 10-thread host.

Without ``split_remainder`` a requirement smaller than every host gets
nothing: ``allocate(4, {"big": 100})`` is ``[]`` even though the pool
could cover it.  The schedulers and the prep controller always dispatch
through ``Dispatcher.dispatch``, which turns ``split_remainder`` on.

With ``split_remainder`` the largest host that was skipped runs exactly
the threads still missing, so a requirement smaller than any single host
can still be met.
"""
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from hgw.batcher.inventory import ResourceInventory


@dataclass(frozen=True)
class Allotment:
    host: str
    threads: int


def allocate(
    threads_needed: int,
    capacities: Mapping[str, int] | Iterable[tuple[str, int]],
    *,
    split_remainder: bool = False,
) -> list[Allotment]:
    """Select hosts for *threads_needed* threads without ever exceeding it."""
    if threads_needed <= 0:
        return []
    items = capacities.items() if isinstance(capacities, Mapping) else capacities
    # sorted() is stable: equal capacities keep pool order.
    pool = sorted(
        ((host, cap) for host, cap in items if cap > 0),
        key=lambda hc: hc[1],
        reverse=True,
    )

    selected: list[Allotment] = []
    skipped: list[tuple[str, int]] = []
    total = 0
    for host, cap in pool:
        if total + cap <= threads_needed:
            selected.append(Allotment(host, cap))
            total += cap
        else:
            skipped.append((host, cap))

    if split_remainder and total < threads_needed and skipped:
        host, _ = skipped[0]
        selected.append(Allotment(host, threads_needed - total))
    return selected


def allotted(allotments: Iterable[Allotment]) -> int:
    return sum(a.threads for a in allotments)


async def allocate_threads(
    inventory: ResourceInventory,
    threads_needed: int,
    script: str,
    hosts: Sequence[str],
    *,
    split_remainder: bool = False,
) -> list[Allotment]:
    """Query current capacities of *hosts* for *script* and allocate."""
    capacities = await inventory.capacities(hosts, script)
    return allocate(threads_needed, capacities, split_remainder=split_remainder)
