"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from timetrack.config import settings
from timetrack.database import database
from timetrack.routers import timers
from timetrack.services.time_entry_store import TimeEntryStore

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    # Startup
    await database.connect()
    await TimeEntryStore(database.db).ensure_indexes()
    yield
    # Shutdown
    await database.disconnect()


app = FastAPI(
    title="Timetrack API",
    description="Time tracking timer engine",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(timers.router)


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {"status": "ok", "message": "Timetrack API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
