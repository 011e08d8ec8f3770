from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from wakeword_service.api import channel_router, control_router
from wakeword_service.core.di import get_config, shutdown_services
from wakeword_service.core.logger import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging; on shutdown stop any session and release the microphone."""
    cfg = get_config()
    setup_logging(cfg.logging, cfg.paths.log_dir)
    yield
    shutdown_services()


app = FastAPI(
    title="wakeword-service",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(control_router.router)
app.include_router(channel_router.router)


@app.get("/health")
def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
