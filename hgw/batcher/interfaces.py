"""Capability interfaces the batcher consumes from the simulation.

The scheduler never touches the database or the world clock directly.
It sees the world through two narrow protocols so that any simulation --
the database-backed engine in ``hgw.sim.engine`` or a test double -- can
be injected.
"""
import enum
from dataclasses import dataclass
from typing import Protocol


class OperationKind(str, enum.Enum):
    HACK = "hack"
    GROW = "grow"
    WEAKEN = "weaken"


class UnknownServerError(ValueError):
    """Raised by a simulation when a hostname does not exist."""


@dataclass(frozen=True)
class ServerSnapshot:
    """Point-in-time view of a server, used both for targets and worker hosts."""

    hostname: str
    is_home: bool
    is_purchased: bool
    has_root: bool
    required_hacking_level: int
    max_ram: float
    ram_used: float
    max_money: float
    money_available: float
    min_security: float
    security: float

    @property
    def free_ram(self) -> float:
        return max(0.0, self.max_ram - self.ram_used)


class SimulationQuery(Protocol):
    async def get_server(self, host: str) -> ServerSnapshot: ...

    async def scan(self, host: str) -> list[str]: ...

    async def get_script_ram(self, script: str) -> float: ...

    async def get_hacking_level(self) -> int: ...

    async def get_time(self) -> float: ...

    async def get_hack_time(self, target: str) -> float: ...

    async def get_grow_time(self, target: str) -> float: ...

    async def get_weaken_time(self, target: str) -> float: ...

    async def hack_analyze(self, target: str) -> float: ...

    async def hack_analyze_threads(self, target: str, money: float) -> float: ...

    async def hack_analyze_security(self, threads: int) -> float: ...

    async def growth_analyze_security(self, threads: int) -> float: ...

    async def grow_threads(
        self, target: str, money: float, security: float | None = None
    ) -> int: ...

    async def weaken_analyze(self, threads: int) -> float: ...


class SimulationAction(Protocol):
    async def exec(
        self,
        script: str,
        host: str,
        threads: int,
        target: str,
        additional_delay: float = 0.0,
    ) -> int: ...

    async def is_running(self, pid: int) -> bool: ...

    async def kill(self, pid: int) -> bool: ...

    async def nuke(self, host: str) -> bool: ...

    async def sleep(self, ms: float) -> None: ...
