#!/usr/bin/env python3
"""Run the B2B portal API"""
import uvicorn

from b2b_portal.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "b2b_portal.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
