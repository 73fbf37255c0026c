"""
Database helper utilities for the B2B portal.

Provides database-agnostic health checks for SQLite and PostgreSQL.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from b2b_portal.core.config import settings

logger = logging.getLogger(__name__)

EXPECTED_TABLES = ("user_profiles", "user_sessions")


def get_database_type(database_url: Optional[str] = None) -> str:
    """
    Get the database type from a database URL.

    Returns:
        str: Database type ('sqlite', 'postgresql', etc.)
    """
    url = (database_url or settings.DATABASE_URL).lower()
    if url.startswith("sqlite"):
        return "sqlite"
    elif url.startswith("postgresql"):
        return "postgresql"
    return url.split("://")[0] if "://" in url else "unknown"


def ensure_database_directory(database_url: Optional[str] = None) -> Optional[Path]:
    """
    Create the parent directory of a file-based SQLite database.

    Returns the directory, or None for in-memory and non-SQLite databases.
    """
    url = make_url(database_url or settings.DATABASE_URL)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return None
    directory = Path(url.database).expanduser().parent
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def get_database_info(engine: Engine) -> Dict[str, Any]:
    """
    Get database connection information and metadata.

    Returns:
        Dict containing database type, connection status, tables and version
    """
    db_type = engine.dialect.name
    info: Dict[str, Any] = {
        "type": db_type,
        "connected": False,
        "tables": [],
        "version": None,
        "error": None,
    }

    try:
        with engine.connect() as conn:
            info["connected"] = True

            if db_type == "sqlite":
                info["version"] = conn.execute(text("SELECT sqlite_version()")).scalar()
            elif db_type == "postgresql":
                version_str = conn.execute(text("SELECT version()")).scalar()
                info["version"] = version_str.split()[1] if version_str else "unknown"

        info["tables"] = inspect(engine).get_table_names()
    except SQLAlchemyError as e:
        logger.error(f"Database connection error: {e}")
        info["error"] = str(e)

    return info


def check_database_health(engine: Engine) -> Dict[str, Any]:
    """
    Perform database health check.

    Status is ``healthy`` when connected with both portal tables present,
    ``warning`` when connected but tables are missing, ``unhealthy`` otherwise.
    """
    db_info = get_database_info(engine)
    missing = [table for table in EXPECTED_TABLES if table not in db_info["tables"]]
    health: Dict[str, Any] = {
        "status": "healthy",
        "database_type": db_info["type"],
        "version": db_info["version"],
        "connected": db_info["connected"],
        "table_count": len(db_info["tables"]),
        "missing_tables": missing,
        "last_error": None,
    }

    if db_info["error"]:
        health["status"] = "unhealthy"
        health["last_error"] = db_info["error"]
    elif not db_info["connected"]:
        health["status"] = "unhealthy"
        health["last_error"] = "Unable to connect to database"
    elif missing:
        health["status"] = "warning"
        health["last_error"] = "Portal tables missing - database may need initialization"

    return health
