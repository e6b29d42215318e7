"""The three worker scripts dispatched by the batcher.

Each worker takes ``(target, additional_delay)`` and performs exactly one
operation against the target.  Workers are kept as small as possible so
that their RAM cost, and therefore the thread capacity of every host, is
as large as possible.
"""
from dataclasses import dataclass

from hgw.batcher.interfaces import OperationKind
from hgw.sim import constants as C


@dataclass(frozen=True)
class WorkerScript:
    name: str
    kind: OperationKind
    ram: float


HACK_SCRIPT = WorkerScript("hack.py", OperationKind.HACK, C.RAM_HACK_SCRIPT)
GROW_SCRIPT = WorkerScript("grow.py", OperationKind.GROW, C.RAM_GROW_SCRIPT)
WEAKEN_SCRIPT = WorkerScript("weaken.py", OperationKind.WEAKEN, C.RAM_WEAKEN_SCRIPT)

WORKERS: dict[OperationKind, WorkerScript] = {
    OperationKind.HACK: HACK_SCRIPT,
    OperationKind.GROW: GROW_SCRIPT,
    OperationKind.WEAKEN: WEAKEN_SCRIPT,
}

SCRIPTS_BY_NAME: dict[str, WorkerScript] = {w.name: w for w in WORKERS.values()}


def worker_for(kind: OperationKind) -> WorkerScript:
    """The worker script that performs *kind*."""
    return WORKERS[OperationKind(kind)]
