#!/usr/bin/env python3
"""
Run the admin API server.

Usage:
    python scripts/run_api.py
    python scripts/run_api.py --port 8080 --reload
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn

from config.logging import logger
from config.settings import settings
from directory.database import init_db


def main():
    parser = argparse.ArgumentParser(description="Run the SuburbMates admin API")
    parser.add_argument("--host", default=settings.API_HOST, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.API_PORT, help="Bind port")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    args = parser.parse_args()

    if not settings.ADMIN_API_TOKEN:
        logger.warning("ADMIN_API_TOKEN is not set; every admin request will be rejected")

    init_db()
    uvicorn.run(
        "api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
