"""Forward and reverse geocoding proxied to the local Photon geocoder."""

import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException

from osm_sync.auth.supabase_auth import verify_jwt
from osm_sync.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_jwt)])

# Set by main.py during lifespan
_http_client: Optional[httpx.AsyncClient] = None


def set_http_client(client: httpx.AsyncClient):
    global _http_client
    _http_client = client


async def _geocoder_get(path: str, params: Dict[str, Any]) -> Dict[str, Any]:
    if _http_client is None:
        raise httpx.HTTPError("HTTP client not initialized")
    response = await _http_client.get(
        settings.geocoder_url.rstrip("/") + path,
        params=params,
        timeout=settings.geocoder_timeout_seconds,
    )
    response.raise_for_status()
    return response.json()


def _feature_to_result(feature: Dict[str, Any]) -> Dict[str, Any]:
    props = feature.get("properties") or {}
    lon, lat = feature["geometry"]["coordinates"][:2]
    return {
        "display_name": props.get("name") or props.get("street") or "Unknown",
        "lat": lat,
        "lon": lon,
        "type": props.get("type") or "place",
        "city": props.get("city"),
        "state": props.get("state"),
        "country": props.get("country"),
    }


@router.get("/search")
async def search(q: str = ""):
    """Place search against the offline geocoder."""
    if not q:
        return {"results": []}
    try:
        data = await _geocoder_get("/api", {"q": q})
        results = [_feature_to_result(f) for f in data.get("features", [])]
    except Exception as exc:
        logger.warning("Geocoder search failed: %s", exc)
        return {"results": [], "source": "none", "error": "Local geocoder not available"}
    return {"results": results, "source": "local"}


@router.get("/reverse")
async def reverse(lat: Optional[float] = None, lon: Optional[float] = None):
    """Coordinates to the nearest named place; falls back to the raw coordinates."""
    if lat is None or lon is None:
        raise HTTPException(status_code=400, detail="lat and lon parameters required")

    try:
        data = await _geocoder_get("/reverse", {"lat": lat, "lon": lon})
        features = data.get("features", [])
        if features:
            props = features[0].get("properties") or {}
            return {
                "display_name": props.get("name") or "Unknown location",
                "lat": lat,
                "lon": lon,
                "address": props,
            }
    except Exception as exc:
        logger.warning("Geocoder reverse lookup failed: %s", exc)

    return {"display_name": f"{lat}, {lon}", "lat": lat, "lon": lon}
