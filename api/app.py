"""
Lease Tracker API Application

FastAPI app serving the ordered project lists:
1. Roadmap steps, properties of interest and project documents
2. The per-project dashboard card layout
3. Key health and maintenance endpoints

Run locally:
    uvicorn api.app:app --reload
"""

import logging
import sys
from datetime import datetime

from fastapi import FastAPI

from leasetrack import __version__
from leasetrack.database import check_db_connection, init_db
from leasetrack.utils.config import get_settings

from .projects import router as projects_router

# Configure logging to stdout
logging.basicConfig(
    level=getattr(logging, get_settings().LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

app = FastAPI(
    title="Lease Tracker",
    description="Client-facing lease tracking dashboard: ordered project lists",
    version=__version__,
)

app.include_router(projects_router)


# ============================================================================
# STARTUP - Initialize Database
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    logger.info("Initializing database...")
    try:
        init_db()
        if not check_db_connection():
            logger.warning("Database connection check failed - continuing anyway")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")


# ============================================================================
# HEALTH
# ============================================================================

@app.get("/")
async def root():
    """Basic liveness check."""
    return {"status": "ok", "service": "leasetrack"}


@app.get("/api/health")
async def health():
    """Detailed health check including database status."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": __version__,
        "environment": get_settings().ENVIRONMENT,
        "database": "connected" if check_db_connection() else "disconnected",
    }
