from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hgw.batcher.errors import BatcherSetupError
from hgw.batcher.inventory import HostPool, ResourceInventory, nuke_network, parse_pool
from hgw.batcher.runner import VARIANTS, runner
from hgw.batcher.targets import find_candidates, weight
from hgw.config import PREP_STRATEGIES, settings
from hgw.database import get_db, get_session_factory
from hgw.models.world import World
from hgw.sim.engine import SimulationBackend

router = APIRouter(prefix="/api/worlds/{world_id}", tags=["batchers"])


class StartBatcherRequest(BaseModel):
    target: str
    variant: str = "proto"
    strategy: str | None = None
    pool: str = HostPool.GENERAL.value
    hack_fraction: float | None = Field(None, gt=0, le=1)
    greedy: bool | None = None


class BatcherStatus(BaseModel):
    world_id: str
    target: str
    variant: str
    state: str
    running: bool
    error: str | None = None
    cycles: int
    batches: int
    failed_batches: int
    preps: int
    money_stolen: float
    threads: dict[str, int]


class CandidateResponse(BaseModel):
    hostname: str
    max_money: float
    money_available: float
    min_security: float
    security: float
    required_hacking_level: int
    weight: float


async def _require_world(db: AsyncSession, world_id: str) -> World:
    world = await db.get(World, world_id)
    if world is None:
        raise HTTPException(status_code=404, detail="World not found")
    return world


@router.post("/batchers", response_model=BatcherStatus)
async def start_batcher(
    world_id: str,
    req: StartBatcherRequest,
    db: AsyncSession = Depends(get_db),
    sessions: async_sessionmaker = Depends(get_session_factory),
):
    await _require_world(db, world_id)
    if req.variant not in VARIANTS:
        raise HTTPException(400, f"Unknown variant {req.variant!r}")
    if req.strategy is not None and req.strategy not in PREP_STRATEGIES:
        raise HTTPException(400, f"Unknown prep strategy {req.strategy!r}")
    try:
        pool = parse_pool(req.pool)
    except ValueError as exc:
        raise HTTPException(400, str(exc))

    overrides = {}
    if req.strategy is not None:
        overrides["prep_strategy"] = req.strategy
    if req.hack_fraction is not None:
        overrides["hack_fraction"] = req.hack_fraction
    if req.greedy is not None:
        overrides["greedy"] = req.greedy
    config = settings.batcher_config(**overrides)

    try:
        entry = await runner.start(
            sessions, world_id, req.target,
            variant=req.variant, pool=pool, config=config,
        )
    except BatcherSetupError as exc:
        raise HTTPException(400, str(exc))
    return BatcherStatus(**entry.status())


@router.get("/batchers", response_model=list[BatcherStatus])
async def list_batchers(world_id: str, db: AsyncSession = Depends(get_db)):
    await _require_world(db, world_id)
    return [BatcherStatus(**entry.status()) for entry in runner.list(world_id)]


@router.delete("/batchers/{target}")
async def stop_batcher(world_id: str, target: str):
    if not await runner.stop(world_id, target):
        raise HTTPException(status_code=404, detail="No batcher against that target")
    return {"status": "stopped", "target": target}


@router.post("/nuke")
async def nuke_all(
    world_id: str,
    db: AsyncSession = Depends(get_db),
    sessions: async_sessionmaker = Depends(get_session_factory),
):
    """Gain root on every server the world's port openers allow."""
    await _require_world(db, world_id)
    backend = SimulationBackend(sessions, world_id, drive_clock=False)
    rooted = await nuke_network(ResourceInventory(backend, settings.batcher_config()), backend)
    return {"rooted": rooted}


@router.get("/candidates", response_model=list[CandidateResponse])
async def candidates(
    world_id: str,
    db: AsyncSession = Depends(get_db),
    sessions: async_sessionmaker = Depends(get_session_factory),
):
    world = await _require_world(db, world_id)
    backend = SimulationBackend(sessions, world_id, drive_clock=False)
    servers = await find_candidates(backend, settings.batcher_config())
    return [
        CandidateResponse(
            hostname=s.hostname,
            max_money=s.max_money,
            money_available=s.money_available,
            min_security=s.min_security,
            security=s.security,
            required_hacking_level=s.required_hacking_level,
            weight=weight(s, world.hacking_level),
        )
        for s in servers
    ]
