#!/usr/bin/env python3
"""Initialize the database with the portal schema"""

import logging
from typing import List, Optional

from sqlalchemy.engine import Engine

from b2b_portal.core.utils.database_helpers import ensure_database_directory
from b2b_portal.db.base import Base

# Import the models to register them with SQLAlchemy before create_all()
from b2b_portal.db.models import UserProfile, UserSession  # noqa: F401

logger = logging.getLogger("b2b_portal.database")


def init_database(bind: Optional[Engine] = None) -> List[str]:
    """Create all tables and return their names"""
    if bind is None:
        from b2b_portal.db.session import engine as bind

    ensure_database_directory(bind.url.render_as_string(hide_password=False))
    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=bind)
    except Exception as e:
        logger.error(f"Error initializing database: {e}", extra={
            "error_type": type(e).__name__,
            "database_url": "[REDACTED]",
        })
        raise

    table_names = [table.name for table in Base.metadata.sorted_tables]
    logger.info("Database initialized", extra={
        "table_count": len(table_names),
        "tables": table_names,
    })
    return table_names


if __name__ == "__main__":
    from b2b_portal.core.utils.logging_config import init_application_logging

    init_application_logging()
    init_database()
