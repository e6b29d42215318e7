from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hgw import __version__
from hgw.config import settings
from hgw.database import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    from hgw.sim.world_loop import world_loop
    from hgw.batcher.runner import runner
    await world_loop.start()
    yield
    await runner.stop_all()
    await world_loop.stop()


def create_app() -> FastAPI:
    app = FastAPI(title="HGW Batcher", version=__version__, lifespan=lifespan)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    from hgw.api.worlds import router as worlds_router
    from hgw.api.batchers import router as batchers_router

    app.include_router(worlds_router)
    app.include_router(batchers_router)

    @app.get("/")
    async def root():
        from hgw.sim.world_loop import world_loop
        return {"status": "ok", "service": "hgw", "loop_running": world_loop.running}

    return app


app = create_app()
