from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hgw.database import get_db
from hgw.models.server import Server
from hgw.models.world import World
from hgw.sim import constants as C

router = APIRouter(prefix="/api/worlds", tags=["worlds"])


class NewWorldRequest(BaseModel):
    name: str = "world"
    seed: int | None = None
    hacking_level: int = Field(C.PLAYER_START_HACKING, ge=1)
    port_openers: int = Field(0, ge=0, le=5)
    home_ram: float = Field(C.HOME_START_RAM, gt=0)
    purchased: int = Field(0, ge=0, le=C.PURCHASED_MAX)
    purchased_ram: float = Field(C.PURCHASED_DEFAULT_RAM, gt=0)
    extra_servers: int = Field(0, ge=0, le=100)


class WorldResponse(BaseModel):
    id: str
    name: str
    now_ms: float
    hacking_level: int
    player_money: float
    port_openers: int
    is_active: bool

    class Config:
        from_attributes = True


class ServerResponse(BaseModel):
    hostname: str
    organization: str
    is_home: bool
    is_purchased: bool
    has_root: bool
    ports_required: int
    required_hacking_level: int
    max_ram: float
    ram_used: float
    max_money: float
    money_available: float
    min_security: float
    security: float
    server_growth: float

    class Config:
        from_attributes = True


class PurchaseRequest(BaseModel):
    ram: float = Field(C.PURCHASED_DEFAULT_RAM, gt=0)
    hostname: str | None = None


class AdvanceRequest(BaseModel):
    ms: float = Field(gt=0)


class SpeedRequest(BaseModel):
    speed: float = Field(ge=0)


async def _get_world_or_404(db: AsyncSession, world_id: str) -> World:
    world = await db.get(World, world_id)
    if world is None:
        raise HTTPException(status_code=404, detail="World not found")
    return world


@router.post("", response_model=WorldResponse)
async def create_world(req: NewWorldRequest, db: AsyncSession = Depends(get_db)):
    from hgw.sim.world_generator import generate_world

    world = await generate_world(
        db,
        req.name,
        seed=req.seed,
        hacking_level=req.hacking_level,
        port_openers=req.port_openers,
        home_ram=req.home_ram,
        purchased=req.purchased,
        purchased_ram=req.purchased_ram,
        extra_servers=req.extra_servers,
    )
    await db.commit()
    return WorldResponse.model_validate(world)


@router.get("", response_model=list[WorldResponse])
async def list_worlds(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(World).order_by(World.created_at.desc()))
    return [WorldResponse.model_validate(w) for w in result.scalars().all()]


@router.get("/{world_id}", response_model=WorldResponse)
async def get_world(world_id: str, db: AsyncSession = Depends(get_db)):
    return WorldResponse.model_validate(await _get_world_or_404(db, world_id))


@router.get("/{world_id}/servers", response_model=list[ServerResponse])
async def list_servers(world_id: str, db: AsyncSession = Depends(get_db)):
    await _get_world_or_404(db, world_id)
    result = await db.execute(
        select(Server).where(Server.world_id == world_id).order_by(Server.id)
    )
    return [ServerResponse.model_validate(s) for s in result.scalars().all()]


@router.post("/{world_id}/servers/purchase", response_model=ServerResponse)
async def purchase(world_id: str, req: PurchaseRequest, db: AsyncSession = Depends(get_db)):
    from hgw.sim.world_generator import purchase_server

    await _get_world_or_404(db, world_id)
    try:
        server = await purchase_server(db, world_id, req.ram, req.hostname)
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    await db.commit()
    return ServerResponse.model_validate(server)


@router.post("/{world_id}/advance", response_model=WorldResponse)
async def advance(world_id: str, req: AdvanceRequest, db: AsyncSession = Depends(get_db)):
    """Move the world clock forward by hand (useful while the loop is paused)."""
    from hgw.sim.engine import advance_world

    world = await _get_world_or_404(db, world_id)
    await advance_world(db, world, req.ms)
    await db.commit()
    return WorldResponse.model_validate(world)


@router.post("/{world_id}/speed")
async def set_speed(world_id: str, req: SpeedRequest, db: AsyncSession = Depends(get_db)):
    """Set the world loop's speed multiplier for this world (0 pauses it)."""
    from hgw.sim.world_loop import world_loop

    await _get_world_or_404(db, world_id)
    world_loop.speed_multiplier[world_id] = req.speed
    return {"world_id": world_id, "speed": req.speed}
