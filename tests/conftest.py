import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from hgw.models.base import Base
from hgw.models import world, server, process  # noqa: F401
from hgw.batcher.inventory import ResourceInventory, nuke_network
from hgw.config import BatcherConfig
from hgw.database import get_db, get_session_factory
from hgw.main import create_app
from hgw.sim.engine import SimulationBackend
from hgw.sim.world_generator import generate_world

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Strong enough to hack every money server in the generated network.
TEST_HACKING_LEVEL = 150
TEST_PORT_OPENERS = 2


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    """A file database: unlike :memory:, every session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'hgw.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def config():
    return BatcherConfig()


async def make_world(session_factory, *, nuke=True, **kwargs) -> SimulationBackend:
    """Generate a world and return a driven-clock backend for it."""
    kwargs.setdefault("seed", 1)
    kwargs.setdefault("hacking_level", TEST_HACKING_LEVEL)
    kwargs.setdefault("port_openers", TEST_PORT_OPENERS)
    async with session_factory() as db:
        w = await generate_world(db, "test", **kwargs)
        await db.commit()
        world_id = w.id
    backend = SimulationBackend(session_factory, world_id, drive_clock=True)
    if nuke:
        await nuke_network(ResourceInventory(backend, BatcherConfig()), backend)
    return backend


@pytest_asyncio.fixture
async def sim(session_factory):
    """A rooted world with two 128 GB purchased servers."""
    return await make_world(session_factory, purchased=2, purchased_ram=128)


async def _client_for(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def client(db_engine):
    async for ac in _client_for(db_engine):
        yield ac


@pytest_asyncio.fixture
async def live_client(file_engine):
    """Client over a file database, for batchers running in the background."""
    async for ac in _client_for(file_engine):
        yield ac
