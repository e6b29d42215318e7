"""Target ranking -- which world servers are worth batching against."""
from hgw.batcher.interfaces import ServerSnapshot, SimulationQuery
from hgw.batcher.inventory import ResourceInventory
from hgw.config import BatcherConfig


def weight(server: ServerSnapshot, hacking_level: int) -> float:
    """Money per unit of security; 0 for anything we cannot or should not hack."""
    if server.max_money <= 0 or server.required_hacking_level > hacking_level:
        return 0.0
    return server.max_money / server.min_security


async def find_candidates(query: SimulationQuery, config: BatcherConfig) -> list[ServerSnapshot]:
    """Rooted, hackable, non-bankrupt servers by descending weight."""
    inventory = ResourceInventory(query, config)
    level = await query.get_hacking_level()
    excluded = set(config.exclude_targets) | {config.home}

    candidates = []
    for host in await inventory.network():
        if host in excluded:
            continue
        server = await query.get_server(host)
        if not server.has_root or server.is_purchased:
            continue
        if weight(server, level) > 0:
            candidates.append(server)
    candidates.sort(key=lambda s: weight(s, level), reverse=True)
    return candidates
