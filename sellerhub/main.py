"""
ASGI entry point: ``uvicorn sellerhub.main:app``.

Mounts the payout routes under /api/v1 and starts the payout scheduler
when PAYOUT_SCHEDULER_ENABLED is set.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from sellerhub.api.v1.router import api_router
from sellerhub.config import settings
from sellerhub.database import async_session_factory, init_db
from sellerhub.jobs.scheduler import shutdown_scheduler, start_scheduler


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} starting")
    await init_db()
    if settings.PAYOUT_SCHEDULER_ENABLED:
        start_scheduler()

    yield

    shutdown_scheduler()
    logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Seller Payouts", "description": "Seller wallet and admin payout desk"},
        {"name": "Health", "description": "Liveness and database connectivity"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")

    response = JSONResponse(
        status_code=500,
        content={
            "error": str(exc) if settings.DEBUG else "Internal server error",
            "type": type(exc).__name__,
            "path": request.url.path,
        },
    )

    # Error responses bypass CORSMiddleware
    origin = request.headers.get("origin")
    allowed = settings.cors_origins_list
    if origin and (origin in allowed or "*" in allowed):
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
    return response


@app.get("/health", tags=["Health"])
async def health_check():
    """Report app version and whether the database answers."""
    checks = {"database": "connected"}
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check could not reach the database: {e}")
        checks["database"] = f"error: {e}"

    healthy = checks["database"] == "connected"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
    if not healthy:
        return JSONResponse(status_code=503, content=body)
    return body
