"""
Masjid Irshad Push API - FastAPI Application

Serves the endpoints the website calls to subscribe browsers, show the
subscriber count, and trigger notifications.

Usage:
    uvicorn irshad.api.main:app --host 127.0.0.1 --port 8080 --reload

    Or run directly:
    python -m irshad.api.main
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

# Load .env file before anything else
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from irshad import get_connection
from irshad.api.routes import api_router
from irshad.config import load_push_config
from irshad.logging_config import setup_logging

logger = logging.getLogger(__name__)

config = load_push_config()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging()
    logger.info("Starting Masjid Irshad Push API...")

    # Create tables before serving
    get_connection().close()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down Masjid Irshad Push API")


app = FastAPI(
    title="Masjid Irshad Push API",
    description="Web Push subscriptions and notification delivery",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

app.include_router(api_router)


@app.get("/health", tags=["health"])
async def health_check():
    """Check database reachability."""
    try:
        conn = get_connection()
        conn.execute("SELECT 1")
        conn.close()
        database = "healthy"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database = "unhealthy"

    return {
        "status": "healthy" if database == "healthy" else "degraded",
        "database": database,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("irshad.api.main:app", host="127.0.0.1", port=8080, reload=True, log_level="info")
