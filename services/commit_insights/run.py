#!/usr/bin/env python3
"""
Commit Insights Service Entry Point

This script starts the commit insights HTTP service.
"""

import uvicorn
from config.settings import get_settings


def main():
    """Start the commit insights service."""
    settings = get_settings()

    uvicorn.run(
        "services.commit_insights.main:app",
        host=settings.service.host,
        port=settings.service.port,
        reload=settings.debug,
        log_level=settings.monitoring.log_level.lower(),
    )


if __name__ == "__main__":
    main()
