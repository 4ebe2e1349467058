"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from osm_sync.api.v1.health import router as health_router
from osm_sync.api.v1.osm import router as osm_router
from osm_sync.api.v1.geocode import router as geocode_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(osm_router, prefix="/osm", tags=["osm"])
v1_router.include_router(geocode_router, prefix="/osm", tags=["geocode"])
