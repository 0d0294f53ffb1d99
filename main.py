"""
Application entry point
Serves the API with uvicorn, optionally applying migrations first
"""

import argparse
import os
import sys

import uvicorn
from app.core.config import settings
from app.db.init_db import init_db


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=f"Run the {settings.APP_NAME} API")
    parser.add_argument("--migrate", action="store_true", help="Apply database migrations before serving")
    parser.add_argument("--host", default=settings.HOST)
    # Hosting platforms set PORT in the environment
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", settings.PORT)))
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    if args.migrate and not init_db():
        sys.exit(1)
    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        reload=settings.DEBUG
    )
