"""
Backend entry point.

Architecture:
- One Python process, one asyncio event loop
- FastAPI serves the cron trigger, push registration and settings routes
- Optionally, APScheduler runs the ping cycle in-process
  (RUN_PING_SCHEDULER=true) instead of an external timer hitting
  /api/cron/ping

Run with: python main.py [--port PORT] [--scheduler]
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

# Load .env.local first (if exists), then .env as fallback
# .env.local is gitignored and used for local dev overrides
load_dotenv(project_root / ".env.local")  # Local overrides (gitignored)
load_dotenv()  # Fallback to .env

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import check_required_env_vars, get_allowed_origins, get_api_port
from core.database import close_engine
from core.notifications.scheduler import init_scheduler, shutdown_scheduler

# Import routes using full paths
from web_api.routes.cron import router as cron_router
from web_api.routes.groups import router as groups_router
from web_api.routes.push import router as push_router
from web_api.routes.users import router as users_router

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

if os.environ.get("SENTRY_DSN"):
    sentry_sdk.init(
        dsn=os.environ["SENTRY_DSN"],
        environment=os.environ.get("SENTRY_ENVIRONMENT", "development"),
        send_default_pii=False,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Checks configuration, starts the optional ping scheduler, and closes
    database connections on shutdown.
    """
    all_ok, warnings = check_required_env_vars()
    for warning in warnings:
        logger.warning(warning)
    if not all_ok:
        raise RuntimeError("Missing required environment variables")

    init_scheduler()

    yield

    logger.info("Shutting down...")
    shutdown_scheduler()
    await close_engine()  # Close database connections


app = FastAPI(
    title="Group Vibes Notification API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(cron_router)
app.include_router(push_router)
app.include_router(groups_router)
app.include_router(users_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Group Vibes Notification Server")
    parser.add_argument(
        "--port",
        type=int,
        default=get_api_port(),
        help="Port to run the server on (default: API_PORT or 8000)",
    )
    parser.add_argument(
        "--scheduler",
        action="store_true",
        help="Run the ping cycle in-process instead of waiting for the cron endpoint",
    )
    args = parser.parse_args()

    # Set env var so it persists across uvicorn reloads
    if args.scheduler:
        os.environ["RUN_PING_SCHEDULER"] = "true"

    # Pass app object directly (not string) to avoid module reimport issues
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=args.port,
    )
