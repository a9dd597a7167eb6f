"""FastAPI application bootstrap: runtime wiring, lifespan and routers."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routers import customers, health, jobs, uploads
from app.core.config import Settings, get_settings
from app.services.import_runtime import build_runtime

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def create_app(settings: Settings | None = None) -> FastAPI:
    """Instantiate the FastAPI app, its import runtime and top-level routers."""
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)

    runtime = build_runtime(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await runtime.startup()
        logger.info(f"{settings.app_name} ready")
        try:
            yield
        finally:
            await runtime.shutdown()

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.runtime = runtime

    logger.info(f"[CORS] Parsed allowed origins: {settings.cors_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    app.include_router(health.router)
    app.include_router(uploads.router, prefix="/api/uploads", tags=["uploads"])
    app.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])
    app.include_router(customers.router, prefix="/api/customers", tags=["customers"])

    return app
