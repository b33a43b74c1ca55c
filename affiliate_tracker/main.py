"""
Affiliate Tracker API application.

Run with: uvicorn affiliate_tracker.main:app
"""
import logging
import sys
from contextlib import asynccontextmanager

import sentry_sdk
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

load_dotenv()

from . import __version__  # noqa: E402
from .config import settings  # noqa: E402
from .core.env import get_env_name, is_local_env  # noqa: E402
from .db import init_db  # noqa: E402
from .run_migrations import run_migrations  # noqa: E402
from .exception_handlers import register_exception_handlers  # noqa: E402
from .middleware.logging import LoggingMiddleware  # noqa: E402
from .routers import admin, affiliate, health, redirect, track  # noqa: E402

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger("affiliate_tracker")

env = get_env_name()
if settings.SENTRY_DSN and not is_local_env():
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=0.1,
        environment=env,
        send_default_pii=False,
    )
    logger.info(f"Sentry error tracking initialized for environment: {env}")
elif settings.SENTRY_DSN:
    logger.info("Sentry DSN configured but not initializing in local environment")


@asynccontextmanager
async def lifespan(app):
    logger.info(f"Starting Affiliate Tracker {__version__} (ENV={env})")
    if is_local_env():
        init_db()
        logger.info("Database tables ensured")
    else:
        run_migrations()
    yield
    logger.info("Shutting down Affiliate Tracker")


app = FastAPI(title="Affiliate Tracker", version=__version__, lifespan=lifespan)

app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "X-API-Key", "X-Admin-Key", "X-Request-ID"],
)

register_exception_handlers(app)

app.include_router(health.router)
app.include_router(redirect.router)
app.include_router(track.router)
app.include_router(affiliate.router)
app.include_router(admin.router)
