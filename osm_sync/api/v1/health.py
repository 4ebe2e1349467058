"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
async def health_check():
    """Liveness only; component status lives under /api/v1/osm/status."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
