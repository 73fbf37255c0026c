import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from b2b_portal.api import auth, profile, session
from b2b_portal.api.dependencies import get_persistence, get_session_store
from b2b_portal.core.config import settings
from b2b_portal.core.security import SecurityHeadersMiddleware, create_safe_error_response
from b2b_portal.core.utils.database_helpers import check_database_health
from b2b_portal.core.utils.logging_config import init_application_logging
from b2b_portal.core.utils.session_store import SessionStore
from b2b_portal.db.init_db import init_database
from b2b_portal.db.persistence import PersistenceService, SqlAlchemyPersistence
from b2b_portal.db.session import engine

# Initialize structured logging
init_application_logging()

logger = logging.getLogger("b2b_portal.main")


async def run_startup_maintenance(store: SessionStore) -> None:
    """Check the sessions table and purge expired sessions. Never raises."""
    if not await store.ensure_schema_ready():
        logger.warning("Session storage is not ready, logins will not persist sessions")
        return
    removed = await store.cleanup_expired_sessions()
    logger.info("Startup session cleanup finished", extra={"removed": removed})


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await run_in_threadpool(init_database, engine)
    except Exception as e:
        logger.error(f"Database initialization failed, continuing in degraded mode: {e}")
    await run_startup_maintenance(SessionStore(get_persistence()))
    yield


app = FastAPI(
    title=settings.APP_NAME,
    description="Session and customer authentication backend for the B2B portal",
    version=settings.VERSION,
    lifespan=lifespan,
)

# Credentialed CORS requires explicit origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)

app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(session.router, prefix="/api", tags=["Session"])
app.include_router(profile.router, prefix="/api/profile", tags=["Profile"])


# Health check endpoints
@app.get("/health")
def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@app.get("/api/health")
async def api_health_check(
    persistence=Depends(get_persistence),
    store: SessionStore = Depends(get_session_store),
):
    """
    Detailed health check: database connectivity and session table readiness.

    Returns 503 when the service cannot authenticate customers.
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.VERSION,
        "environment": {
            "name": settings.ENVIRONMENT,
            "dev_mode": settings.DEV_MODE,
            "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        },
        "services": {},
    }

    if isinstance(persistence, SqlAlchemyPersistence):
        db_health = await run_in_threadpool(check_database_health, persistence.engine)
        health_status["services"]["database"] = {
            "status": db_health["status"],
            "type": db_health["database_type"],
            "connected": db_health["connected"],
            "missing_tables": db_health["missing_tables"],
            "last_error": db_health["last_error"] and create_safe_error_response(
                Exception(db_health["last_error"]), "Database check failed", settings.DEV_MODE
            ),
        }
        if db_health["status"] == "unhealthy":
            health_status["status"] = "unhealthy"
        elif db_health["status"] != "healthy":
            health_status["status"] = "degraded"
    elif isinstance(persistence, PersistenceService):
        health_status["services"]["database"] = {"status": "external"}
    else:
        health_status["services"]["database"] = {"status": "unconfigured"}
        health_status["status"] = "unhealthy"

    sessions_ready = await store.ensure_schema_ready()
    health_status["services"]["sessions"] = {
        "status": "healthy" if sessions_ready else "unhealthy",
        "table_ready": sessions_ready,
    }
    if not sessions_ready:
        health_status["status"] = "unhealthy"

    status_code = 503 if health_status["status"] == "unhealthy" else 200
    return JSONResponse(health_status, status_code=status_code)
