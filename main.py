"""
DataSense API - Main Entry Point
Natural language to safe SQL, plus queued conversational replies
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from redis import exceptions as redis_exceptions
import logging

# Import configuration
from datasense.config import settings, configure_logging

# Import API routers
from datasense.api import sql, chat, app_metadata

# Import service wiring
from datasense.dependencies import build_container

configure_logging()
logger = logging.getLogger(__name__)


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan (startup/shutdown)"""
    # Startup
    logger.info("Starting DataSense API...")

    services = getattr(app.state, "services", None) or build_container(settings)
    app.state.services = services

    if settings.WORKER_ENABLED:
        services.worker.start()
    else:
        logger.info("LLM queue worker disabled (WORKER_ENABLED=false)")

    logger.info(f"Inference provider: {settings.INFERENCE_PROVIDER}")
    logger.info("DataSense API started successfully")

    yield

    # Shutdown
    logger.info("Shutting down DataSense API...")
    if settings.WORKER_ENABLED:
        await services.worker.stop()
    await services.aclose()


# Initialize FastAPI app
app = FastAPI(
    title="DataSense API",
    description="Natural-language to SQL generation with a lexical safety gate and queued chat replies",
    version="0.1.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sql.router)
app.include_router(chat.router)
app.include_router(app_metadata.router)


@app.get("/health")
async def health(request: Request):
    """Health check: Redis reachability, queue depth and worker load"""
    services = request.app.state.services
    try:
        redis_ok = bool(await services.redis_client.ping())
    except redis_exceptions.RedisError:
        redis_ok = False

    return {
        "status": "healthy" if redis_ok else "degraded",
        "redis": redis_ok,
        "queue_depth": await services.queue.get_queue_depth(),
        "in_flight": services.worker.in_flight,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000)
