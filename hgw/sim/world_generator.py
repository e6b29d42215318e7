"""
World generator - creates a simulated network for the batcher to work on.

The fixed part of the network mirrors the early game: ``home`` linked to a
ring of low-level servers, with deeper servers behind them.  Optional extra
servers are generated from a seeded RNG and hung off random existing
servers, and purchased servers are linked directly to ``home``.
"""
import random

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hgw.models.server import Server, ServerLink
from hgw.models.world import World
from hgw.sim import constants as C
from hgw.sim.name_generator import generate_hostname, generate_organization

# World servers start with this fraction of their maximum money.
STARTING_MONEY_FRACTION = 0.4


async def generate_world(
    db: AsyncSession,
    name: str,
    *,
    seed: int | None = None,
    hacking_level: int = C.PLAYER_START_HACKING,
    port_openers: int = 0,
    home_ram: float = C.HOME_START_RAM,
    purchased: int = 0,
    purchased_ram: float = C.PURCHASED_DEFAULT_RAM,
    extra_servers: int = 0,
) -> World:
    """Generate a complete starting world and return it (flushed, not committed)."""
    rng = random.Random(seed)

    world = World(
        name=name,
        now_ms=0.0,
        hacking_level=hacking_level,
        player_money=C.PLAYER_START_MONEY,
        port_openers=port_openers,
    )
    db.add(world)
    await db.flush()

    servers: dict[str, Server] = {}
    servers[C.HOME] = await _create_server(
        db, world.id,
        hostname=C.HOME,
        organization="Home",
        is_home=True,
        has_root=True,
        max_ram=home_ram,
    )

    for (hostname, org, level, ports, ram, max_money,
         min_sec, sec, growth) in C.WORLD_SERVERS:
        servers[hostname] = await _create_server(
            db, world.id,
            hostname=hostname,
            organization=org,
            required_hacking_level=level,
            ports_required=ports,
            max_ram=ram,
            max_money=max_money,
            money_available=max_money * STARTING_MONEY_FRACTION,
            min_security=min_sec,
            security=sec,
            server_growth=growth,
        )

    for source, dest in C.WORLD_LINKS:
        await _link(db, world.id, servers[source], servers[dest])

    # Extra servers hang off any existing non-home server.
    for _ in range(extra_servers):
        hostname = generate_hostname(rng)
        while hostname in servers:
            hostname = f"{generate_hostname(rng)}-{rng.randint(1, 99)}"
        max_money = rng.randint(*C.EXTRA_SERVER_MONEY_RANGE)
        min_sec = rng.randint(*C.EXTRA_SERVER_SECURITY_RANGE)
        parent = rng.choice([s for h, s in servers.items() if h != C.HOME])
        servers[hostname] = await _create_server(
            db, world.id,
            hostname=hostname,
            organization=generate_organization(hostname),
            required_hacking_level=rng.randint(*C.EXTRA_SERVER_LEVEL_RANGE),
            ports_required=rng.randint(0, 2),
            max_ram=rng.choice(C.EXTRA_SERVER_RAM_CHOICES),
            max_money=max_money,
            money_available=max_money * STARTING_MONEY_FRACTION,
            min_security=min_sec,
            security=min_sec * 3,
            server_growth=rng.randint(*C.EXTRA_SERVER_GROWTH_RANGE),
        )
        await _link(db, world.id, parent, servers[hostname])

    for _ in range(purchased):
        await purchase_server(db, world.id, purchased_ram)

    await db.flush()
    return world


async def purchase_server(
    db: AsyncSession,
    world_id: str,
    ram: float = C.PURCHASED_DEFAULT_RAM,
    hostname: str | None = None,
) -> Server:
    """Add a purchased server linked to ``home``."""
    owned = (
        await db.execute(
            select(func.count(Server.id)).where(
                Server.world_id == world_id,
                Server.is_purchased == True,  # noqa: E712
            )
        )
    ).scalar_one()
    if owned >= C.PURCHASED_MAX:
        raise ValueError(f"Already own the maximum of {C.PURCHASED_MAX} servers")
    if ram <= 0:
        raise ValueError("RAM must be positive")

    hostname = hostname or f"{C.PURCHASED_PREFIX}-{owned}"
    taken = (
        await db.execute(
            select(Server.id).where(
                Server.world_id == world_id, Server.hostname == hostname
            )
        )
    ).scalar_one_or_none()
    if taken is not None:
        raise ValueError(f"Hostname {hostname} is already taken")

    home = (
        await db.execute(
            select(Server).where(
                Server.world_id == world_id,
                Server.is_home == True,  # noqa: E712
            )
        )
    ).scalar_one()
    server = await _create_server(
        db, world_id,
        hostname=hostname,
        organization="Purchased",
        is_purchased=True,
        has_root=True,
        max_ram=ram,
    )
    await _link(db, world_id, home, server)
    return server


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def _create_server(db: AsyncSession, world_id: str, **fields) -> Server:
    server = Server(world_id=world_id, **fields)
    db.add(server)
    await db.flush()
    return server


async def _link(db: AsyncSession, world_id: str, a: Server, b: Server) -> None:
    db.add(ServerLink(world_id=world_id, source_id=a.id, dest_id=b.id))
    await db.flush()
