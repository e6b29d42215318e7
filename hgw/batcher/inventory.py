"""Resource inventory -- which worker hosts exist and how many threads each can run.

Every query goes to the simulation: host RAM is shared with anything else
running in the world, so capacities are never cached.
"""
import enum
import logging
import math
from collections import deque
from typing import Sequence

from hgw.batcher.interfaces import SimulationAction, SimulationQuery, UnknownServerError
from hgw.config import BatcherConfig

log = logging.getLogger(__name__)


class HostPool(str, enum.Enum):
    # Rooted world servers, excluding home and purchased servers.
    GENERAL = "general"
    # Purchased servers only.
    DEDICATED = "dedicated"


# A pool is either a named inventory or an explicit list of hostnames.
PoolSpec = HostPool | Sequence[str]


def parse_pool(value: str) -> PoolSpec:
    """Parse a pool argument: ``general``, ``dedicated`` or ``host1,host2``."""
    try:
        return HostPool(value)
    except ValueError:
        hosts = [h.strip() for h in value.split(",") if h.strip()]
        if not hosts:
            raise ValueError(f"Empty host pool: {value!r}")
        return hosts


class ResourceInventory:
    def __init__(self, query: SimulationQuery, config: BatcherConfig) -> None:
        self.query = query
        self.config = config

    async def network(self) -> list[str]:
        """Every server reachable from home, in breadth-first order (home excluded)."""
        home = self.config.home
        seen = {home}
        order: list[str] = []
        queue = deque([home])
        while queue:
            node = queue.popleft()
            for neighbour in await self.query.scan(node):
                if neighbour in seen:
                    continue
                seen.add(neighbour)
                order.append(neighbour)
                queue.append(neighbour)
        return order

    async def list_hosts(self, pool: HostPool = HostPool.GENERAL) -> list[str]:
        """Rooted hosts belonging to *pool*."""
        hosts = []
        for name in await self.network():
            server = await self.query.get_server(name)
            if not server.has_root or server.is_home:
                continue
            if server.is_purchased == (HostPool(pool) == HostPool.DEDICATED):
                hosts.append(name)
        return hosts

    async def resolve(self, pool: PoolSpec) -> list[str]:
        """Hostnames for a named pool or an explicit list."""
        if isinstance(pool, HostPool):
            return await self.list_hosts(pool)
        if isinstance(pool, str):
            return [pool]
        return list(pool)

    async def capacity(self, host: str, script: str) -> int:
        """Threads of *script* that fit in *host*'s free RAM right now."""
        try:
            server = await self.query.get_server(host)
        except UnknownServerError:
            return 0
        script_ram = await self.query.get_script_ram(script)
        if not server.has_root or script_ram <= 0:
            return 0
        free = server.free_ram
        if server.is_home:
            free -= self.config.home_reserve_ram
        if free < script_ram:
            return 0
        return math.floor(free / script_ram)

    async def capacities(self, hosts: Sequence[str], script: str) -> dict[str, int]:
        return {host: await self.capacity(host, script) for host in hosts}

    async def total_capacity(self, hosts: Sequence[str], script: str) -> int:
        return sum((await self.capacities(hosts, script)).values())


async def nuke_network(
    inventory: ResourceInventory, action: SimulationAction
) -> list[str]:
    """Try to gain root access on every reachable server; return the rooted ones."""
    rooted = []
    for host in await inventory.network():
        if await action.nuke(host):
            rooted.append(host)
    log.info("Root access on %d server(s)", len(rooted))
    return rooted
