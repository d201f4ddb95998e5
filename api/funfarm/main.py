from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from .middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware  # noqa: E402
from .routers import (  # noqa: E402
    auth,
    friends,
    merge_admin,
    moderation,
    notifications,
    orders,
    posts,
    profiles,
    rewards_admin,
    system,
    wallet,
    webhooks,
)
from .websocket_manager import connection_manager  # noqa: E402

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

_STARTUP_COMPLETE = False


def _alembic_config() -> Config:
    base_dir = Path(__file__).resolve().parent.parent
    cfg = Config(str(base_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(base_dir / "alembic"))
    return cfg


def run_migrations() -> None:
    logger.info("run_migrations: Starting...")
    try:
        from alembic.runtime.migration import MigrationContext
        from alembic.script import ScriptDirectory

        from .db import engine

        alembic_cfg = _alembic_config()
        try:
            with engine.connect() as connection:
                context = MigrationContext.configure(connection)
                current_heads = context.get_current_heads()
                current_rev = current_heads[0] if len(current_heads) == 1 else None

                script = ScriptDirectory.from_config(alembic_cfg)
                head = script.get_current_head()

                if current_rev and current_rev == head:
                    logger.info(f"Database is up to date (revision: {current_rev}), skipping migrations.")
                    return
                logger.info(f"Current revision(s): {current_heads}, target revision: {head}. Running migrations...")
        finally:
            # Ensure connection is closed before calling command.upgrade
            engine.dispose()

        command.upgrade(alembic_cfg, "head")
        logger.info("run_migrations: Completed successfully.")
    except Exception as e:
        logger.error(f"run_migrations: Error occurred: {e}", exc_info=True)
        raise


def run_startup_tasks() -> None:
    global _STARTUP_COMPLETE
    if _STARTUP_COMPLETE:
        logger.info("run_startup_tasks: Already completed, skipping.")
        return
    try:
        run_migrations()
        _STARTUP_COMPLETE = True
        logger.info("Startup tasks completed.")
    except Exception as e:
        logger.error(f"Startup tasks failed: {e}", exc_info=True)
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    # Server won't start until migrations complete
    run_startup_tasks()
    await connection_manager.start_redis_listener()
    logger.info("FUN Farm API server ready")
    yield
    logger.info("Shutting down application...")
    await connection_manager.stop_redis_listener()


app = FastAPI(
    title="FUN Farm API",
    version="1.0.0",
    description="Farm-to-table social network, marketplace and CAMLY reward economy",
    lifespan=lifespan,
)

# In production, set CORS_ORIGINS to a comma-separated list of allowed origins
cors_origins_str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
if cors_origins_str == "*":
    logger.warning(
        "CORS is configured to allow all origins. "
        "This is insecure for production. Set CORS_ORIGINS to specific domains."
    )
cors_origins = [origin.strip() for origin in cors_origins_str.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_origins_str != "*",
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
        "X-Requested-With",
        "X-Fun-Profile-Webhook",
        "X-Fun-Signature",
    ],
    max_age=600,
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(system.router)
app.include_router(auth.router)
app.include_router(profiles.router)
app.include_router(posts.router)
app.include_router(friends.router)
app.include_router(orders.router)
app.include_router(wallet.router)
app.include_router(notifications.router)
app.include_router(rewards_admin.router)
app.include_router(merge_admin.router)
app.include_router(moderation.router)
app.include_router(webhooks.router)
