import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from commitsync.api.internal import router as internal_router
from commitsync.config import settings
from commitsync.core.database import init_db


def setup_logging() -> None:
    """Configure application logging."""
    # Format: timestamp - level - logger name - message
    log_format = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
    date_format = "%H:%M:%S"

    # Configure root logger
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format=log_format,
        datefmt=date_format,
        stream=sys.stdout,
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    # Quieten uvicorn access logs (we'll log requests ourselves)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    from commitsync.services.github import close_github_client
    from commitsync.services.scheduler import scheduler

    # Startup
    setup_logging()
    logger.info("commitsync starting up")
    if settings.debug:
        await init_db()
    scheduler.start()
    yield
    # Shutdown
    scheduler.stop()
    await close_github_client()
    logger.info("commitsync shutting down")


app = FastAPI(
    title="commitsync",
    description="GitHub activity synchronization service",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log failed requests and internal triggers."""
    if request.url.path == "/health":
        return await call_next(request)

    response = await call_next(request)

    path = request.url.path
    if response.status_code >= 400 or path.startswith("/internal"):
        logger.info(f"{request.method} {path} → {response.status_code}")

    return response


app.include_router(internal_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    from commitsync.services.scheduler import scheduler

    return {"status": "healthy", "scheduler_running": scheduler.running}
