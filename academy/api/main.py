"""
Football Academy API Server

FastAPI server for player development, team management, coach education and
parent engagement.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from academy.api.routes import router, limiter as routes_limiter
from academy.database import db
from academy.database.init_defaults import init_defaults
from academy.services import settings_service

# LOG_LEVEL env sets the startup level; the log_level setting overrides it
# once the database is reachable.
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

ACADEMY_NAME = os.getenv("ACADEMY_NAME", "Football Academy")


async def _apply_log_level_setting():
    try:
        async with db.AsyncSessionLocal() as session:
            log_level_setting = await settings_service.get_setting(session, "log_level")
        if log_level_setting:
            log_level_name = log_level_setting.upper()
            logging.getLogger().setLevel(getattr(logging, log_level_name, logging.INFO))
            logger.info(f"Log level set from database: {log_level_name}")
        else:
            logger.info(f"Log level set from environment: {log_level}")
    except Exception as e:
        logger.warning(f"Could not load log level from database, using environment: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    logger.info(f"Starting up {ACADEMY_NAME} API...")

    # Tables missing from migrations are created here
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    try:
        await init_defaults()
        logger.info("✓ Default values initialized")
        await _apply_log_level_setting()
    except Exception as e:
        logger.error(f"Failed to initialize defaults: {e}", exc_info=True)

    yield

    logger.info(f"Shutting down {ACADEMY_NAME} API...")
    try:
        await settings_service.close_redis_connection()
        logger.info("✓ Redis connection closed")
    except Exception as e:
        logger.error(f"Error closing Redis connection: {e}", exc_info=True)


app = FastAPI(
    title=f"{ACADEMY_NAME} API",
    description="Player development, teams, tactics, coach education and parent portal",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Origins come from the ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/api/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Service status
    """
    return {"status": "healthy", "message": "API is running"}


@app.get("/", response_class=HTMLResponse)
async def root():
    """API root endpoint - frontend is served separately."""
    return HTMLResponse(
        content=f"""
        <!DOCTYPE html>
        <html>
            <head>
                <title>{ACADEMY_NAME} API</title>
                <style>
                    body {{ font-family: sans-serif; max-width: 800px; margin: 50px auto; padding: 20px; }}
                    h1 {{ color: #1b7f3b; }}
                    a {{ color: #1b7f3b; }}
                </style>
            </head>
            <body>
                <h1>⚽ {ACADEMY_NAME} API</h1>
                <p>API is running successfully!</p>
                <h2>Available Resources:</h2>
                <ul>
                    <li><a href="/docs">API Documentation</a> - Interactive API docs</li>
                    <li><a href="/api/health">Health Check</a> - System status</li>
                </ul>
                <p><em>Note: Frontend is served separately.</em></p>
            </body>
        </html>
    """
    )


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
