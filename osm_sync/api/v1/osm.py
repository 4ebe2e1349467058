"""OSM sync API: presets, system status, start/poll/cancel sync jobs."""

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from osm_sync.auth.supabase_auth import verify_jwt
from osm_sync.config import settings
from osm_sync.jobs.errors import JobNotFoundError, SyncConflictError
from osm_sync.jobs.models import JobStatus
from osm_sync.osm.presets import list_presets, resolve
from osm_sync.osm.probes import system_status

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_jwt)])

# Set by main.py during lifespan
_orchestrator = None
_data_store = None
_http_client: Optional[httpx.AsyncClient] = None


def set_orchestrator(orchestrator):
    global _orchestrator
    _orchestrator = orchestrator


def set_data_store(data_store):
    global _data_store
    _data_store = data_store


def set_http_client(client: httpx.AsyncClient):
    global _http_client
    _http_client = client


def _require_orchestrator():
    if _orchestrator is None:
        raise HTTPException(status_code=503, detail="Sync orchestrator not initialized")
    return _orchestrator


class SyncStartRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    preset_id: Optional[str] = Field(default=None, alias="presetId")
    custom_url: Optional[str] = Field(default=None, alias="customUrl")


class SyncStartResponse(BaseModel):
    jobId: str
    status: str
    message: str


@router.get("/presets")
async def get_presets():
    """List the extracts that can be synced."""
    return [p.to_dict() for p in list_presets()]


@router.get("/status")
async def get_system_status():
    """Database, tile server, geocoder and data file status, plus the running job."""
    orchestrator = _require_orchestrator()
    try:
        return await system_status(orchestrator.registry, _data_store, _http_client)
    except Exception:
        logger.exception("Status check failed")
        raise HTTPException(status_code=500, detail="Failed to get status")


@router.post("/sync/start", response_model=SyncStartResponse)
async def start_sync(request: SyncStartRequest):
    """Start a sync for a preset or custom extract URL.

    Returns immediately; poll GET /sync/{jobId} for progress.
    """
    orchestrator = _require_orchestrator()
    try:
        preset = resolve(request.preset_id, request.custom_url)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        job = orchestrator.start(preset)
    except SyncConflictError as e:
        raise HTTPException(
            status_code=409,
            detail={"error": "Another sync job is already running", "jobId": e.active_job_id},
        )

    return SyncStartResponse(jobId=job.id, status=job.status.value, message="Sync job started")


@router.get("/sync/{job_id}")
async def get_sync_job(job_id: str):
    orchestrator = _require_orchestrator()
    try:
        job = orchestrator.registry.get(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    return job.to_status(settings.job_log_tail)


@router.delete("/sync/{job_id}")
async def cancel_sync_job(job_id: str):
    """Cancel a running job. Finished jobs are reported as they are."""
    orchestrator = _require_orchestrator()
    try:
        job = orchestrator.cancel(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    if job.status == JobStatus.CANCELLED:
        message = "Job cancelled"
    else:
        message = f"Job already {job.status.value}"
    return {"message": message, "jobId": job.id, "status": job.status.value}
