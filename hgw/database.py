from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from hgw.config import settings

engine = create_async_engine(settings.DATABASE_URL, echo=False)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    """FastAPI dependency that yields an async database session."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind=None) -> None:
    """Create all tables. For development use only."""
    from hgw.models.base import Base
    # Import all models so they register with Base.metadata
    from hgw.models import world, server, process  # noqa: F401
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def get_session_factory() -> async_sessionmaker:
    """FastAPI dependency for code that opens its own sessions (batchers, the loop)."""
    return async_session
