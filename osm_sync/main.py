"""Offline map sync service - FastAPI application."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from osm_sync.config import settings
from osm_sync.logging_config import configure_logging
from osm_sync.api.v1.router import v1_router
from osm_sync.api.v1.health import router as health_root_router
from osm_sync.api.v1 import osm as osm_api
from osm_sync.api.v1 import geocode as geocode_api
from osm_sync.jobs.registry import JobRegistry
from osm_sync.osm.commands import StageCommands
from osm_sync.osm.orchestrator import SyncOrchestrator
from osm_sync.storage.osm_files import OsmDataStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    configure_logging(settings.log_level)

    data_store = OsmDataStore(
        settings.osm_base_dir,
        current_name=settings.current_extract_name,
        tiles_name=settings.tile_package_name,
    )
    data_store.ensure_dirs()
    logger.info("OSM data dir: %s", data_store.base_dir)

    registry = JobRegistry(
        retention_hours=settings.job_retention_hours,
        max_retained=settings.max_retained_jobs,
        log_limit=settings.job_log_max_entries,
    )
    commands = StageCommands.from_settings(settings)
    orchestrator = SyncOrchestrator(registry, data_store, commands)
    logger.info("Import command: %s", " ".join(commands.import_command))
    logger.info("Tiles command: %s", " ".join(commands.tiles_command))

    http_client = httpx.AsyncClient(timeout=settings.probe_timeout_seconds)

    # Wire collaborators into API endpoints
    osm_api.set_orchestrator(orchestrator)
    osm_api.set_data_store(data_store)
    osm_api.set_http_client(http_client)
    geocode_api.set_http_client(http_client)

    yield

    logger.info("Shutting down; cancelling running sync jobs")
    await orchestrator.shutdown()
    await http_client.aclose()


app = FastAPI(
    title="Offline Map Sync Service",
    description="Downloads OSM extracts, imports them into PostGIS and builds offline tiles",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_root_router, tags=["health"])  # GET /health at root
app.include_router(v1_router)  # All /api/v1/* endpoints


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("osm_sync.main:app", host="0.0.0.0", port=settings.port)
