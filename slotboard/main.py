import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from slotboard.create_db_engine import create_engine
from slotboard.db import create_session_factory
from slotboard.dependencies import build_services
from slotboard.exceptions import LeaderboardError, ValidationError
from slotboard.load_settings import allowed_origins, heartbeat_interval_sec, log_level
from slotboard.models.schemas import Base
from slotboard.routers.leaderboard import leaderboard_router
from slotboard.routers.live import live_router

logging.basicConfig(level=log_level)


async def leaderboard_error_handler(request: Request, exc: LeaderboardError) -> JSONResponse:
    content = {"status": "error", "message": exc.message, "error": type(exc).__name__}
    if isinstance(exc, ValidationError):
        content["field"] = exc.field
    logging.info(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content)


def create_app(database_url: str | None = None, heartbeat_sec: int = heartbeat_interval_sec) -> FastAPI:
    """Build the leaderboard app on top of one database

    Args:
        database_url (str | None): Async SQLAlchemy url; defaults to the configured database
        heartbeat_sec (int): Interval of the connection heartbeat job, 0 disables it
    """
    engine = create_engine(database_url)
    Session = create_session_factory(engine)
    services = build_services(Session)
    scheduler = AsyncIOScheduler()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create the tables and start the heartbeat job.
        This function is called to start the server.
        """
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        if heartbeat_sec > 0:
            # Drops connections that vanished without a close frame
            scheduler.add_job(
                services.broadcaster.heartbeat,
                "interval",
                seconds=heartbeat_sec,
            )
            scheduler.start()
        try:
            yield
        finally:
            if scheduler.running:
                scheduler.shutdown()
            await engine.dispose()
            logging.info("Stop Server")

    app = FastAPI(lifespan=lifespan)
    app.state.services = services
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(LeaderboardError, leaderboard_error_handler)
    app.include_router(leaderboard_router)
    app.include_router(live_router)
    return app


app = create_app()
