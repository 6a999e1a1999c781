import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import Depends, FastAPI, HTTPException, status
from sqlalchemy import text

from .config import Settings, get_settings
from .db.session import get_engine, session_scope
from .logging_config import configure_logging
from .processor_routes import router as processor_router
from .repositories.adaptation_rules import adaptation_rules
from .scheduler import create_analytics_scheduler
from . import telemetry_pipeline  # noqa: F401  registers the audit listener


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    if settings.seed_default_rules:
        with session_scope() as session:
            seeded = adaptation_rules.seed_defaults(session)
        logger.info("Seeded %d default adaptation rule(s)", seeded)

    scheduler = create_analytics_scheduler(settings)
    app.state.analytics_scheduler = scheduler
    scheduler.start()
    try:
        yield
    finally:
        scheduler.stop()
        app.state.analytics_scheduler = None


app = FastAPI(title="Adaptive Analytics Engine", version="0.1.0", lifespan=lifespan)
app.include_router(processor_router)


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    return {"status": "ok", "mode": "analytics-processor"}


@app.get("/healthz/database")
def database_health() -> Dict[str, Any]:
    try:
        engine = get_engine()
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        logger.exception("Database health check failed")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {
        "status": "ok",
        "dialect": engine.dialect.name,
        "pool": engine.pool.status(),
    }
