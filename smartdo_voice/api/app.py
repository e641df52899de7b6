from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from smartdo_voice.api import main_router as voice_router
from smartdo_voice.api import service_router as core_router
from smartdo_voice.api import voice_ws
from smartdo_voice.core.di import get_config, get_voice_session
from smartdo_voice.core.logger import get_logger, setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle - logging setup and voice session shutdown."""
    cfg = get_config()
    setup_logging(cfg.logging, cfg.paths.fs_dir)
    get_logger("api.app").info("SmartDo voice server starting")
    yield
    session = get_voice_session()
    if session.is_active:
        await session.stop()


app = FastAPI(
    title="smartdo-voice",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(core_router.router)
app.include_router(voice_router.router)
app.include_router(voice_ws.router)
