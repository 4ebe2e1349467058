"""Health probes for the offline-map stack.

Each probe reports its own component and never raises: a dead
database or tile server degrades one field of the status report,
not the whole request.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine

from osm_sync.config import settings
from osm_sync.jobs.registry import JobRegistry
from osm_sync.storage.osm_files import OsmDataStore

_TABLE_COUNT_SQL = text(
    "SELECT COUNT(*) FROM information_schema.tables WHERE table_schema = 'public'"
)


async def probe_database(database_url: Optional[str] = None) -> Dict[str, Any]:
    """Count public tables in the spatial database."""
    try:
        url = make_url(database_url or settings.osm_database_url)
        if settings.osm_db_password and not url.password:
            url = url.set(password=settings.osm_db_password)
        engine = create_async_engine(
            url, connect_args={"timeout": settings.probe_timeout_seconds}
        )
    except Exception as exc:
        return {"status": "not_configured", "error": str(exc)}

    try:
        async with engine.connect() as conn:
            result = await conn.execute(_TABLE_COUNT_SQL)
            table_count = int(result.scalar_one())
    except Exception as exc:
        return {"status": "not_configured", "error": str(exc)}
    finally:
        await engine.dispose()

    return {
        "status": "ready" if table_count > 0 else "empty",
        "tables": table_count,
    }


async def probe_http(client: httpx.AsyncClient, url: str) -> Dict[str, Any]:
    """A service is online if it answers at all without a server error."""
    try:
        response = await client.get(url, timeout=settings.probe_timeout_seconds)
    except (httpx.HTTPError, httpx.InvalidURL):
        return {"status": "offline", "url": url}
    status = "online" if response.status_code < 500 else "offline"
    return {"status": status, "url": url}


def probe_data_files(data_store: OsmDataStore) -> Dict[str, Any]:
    try:
        size = data_store.extract_size()
        if size is None:
            return {"status": "not_present"}
        return {
            "status": "present",
            "osmFile": str(data_store.current_extract),
            "size": f"{size / 1024 / 1024 / 1024:.2f} GB",
            "tilesGenerated": data_store.tiles_generated(),
        }
    except OSError as exc:
        return {"status": "error", "error": str(exc)}


async def system_status(
    registry: JobRegistry,
    data_store: OsmDataStore,
    client: httpx.AsyncClient,
    database_probe: Callable[[], Awaitable[Dict[str, Any]]] = probe_database,
) -> Dict[str, Any]:
    """Aggregate status report plus a summary of the running job, if any."""
    database, tile_server, geocoder = await asyncio.gather(
        database_probe(),
        probe_http(client, settings.tile_server_url),
        probe_http(client, settings.geocoder_url.rstrip("/") + "/"),
    )

    active = registry.find_active()
    return {
        "database": database,
        "tileServer": tile_server,
        "geocoder": geocoder,
        "dataFiles": probe_data_files(data_store),
        "syncJob": active.summary() if active else None,
    }
