import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from . import telemetry_pipeline
from .config import Settings, get_settings
from .db.base import Base
from .db.monitoring import probe_database
from .db.session import dispose_engine, get_engine
from .db.views import create_trainer_slug_view
from .logging_config import configure_logging
from .trainer_routes import router as trainer_router


configure_logging()
logger = logging.getLogger(__name__)


def prepare_database(settings: Settings) -> None:
    """Create tables and the slug view when they are missing."""
    engine = get_engine()
    Base.metadata.create_all(engine)
    with engine.begin() as connection:
        create_trainer_slug_view(connection, settings.slug_view_name)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    telemetry_pipeline.install()
    if settings.database_url:
        try:
            prepare_database(settings)
        except SQLAlchemyError:
            logger.exception("Database preparation failed; requests will report the store as unavailable")
    else:
        logger.warning("TRAINER_DATABASE_URL is not configured")
    try:
        yield
    finally:
        await telemetry_pipeline.drain()
        telemetry_pipeline.uninstall()
        dispose_engine()


settings_snapshot = get_settings()
app = FastAPI(title="Trainer Profiles Backend", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings_snapshot.cors_origin_list or ["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)
app.include_router(trainer_router)

logger.info("Backend starting with slug view: %s", settings_snapshot.slug_view_name)
logger.info("Database configured: %s", bool(settings_snapshot.database_url))


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    return {"status": "ok", "slug_view": settings.slug_view_name}


@app.get("/healthz/database")
def database_health() -> Dict[str, Any]:
    try:
        engine = get_engine()
        probe = probe_database(engine)
    except (RuntimeError, SQLAlchemyError) as exc:
        logger.warning("Database health check failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {"status": "ok", **probe}


def run() -> None:
    import os

    import uvicorn

    host = os.getenv("TRAINER_HOST", "0.0.0.0")
    port = int(os.getenv("TRAINER_PORT", "8000"))
    logger.info("Starting trainer profiles backend on %s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_level="info", log_config=None)


if __name__ == "__main__":
    run()
