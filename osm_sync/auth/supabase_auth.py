"""Supabase JWT validation dependency for FastAPI."""

import logging

from fastapi import Header, HTTPException
from supabase import create_client

from osm_sync.config import settings

logger = logging.getLogger(__name__)


async def verify_jwt(authorization: str = Header(None)) -> dict:
    """Validate the bearer token of the current session.

    Returns the authenticated user object.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Access token required")

    token = authorization.replace("Bearer ", "", 1)
    if not settings.supabase_url or not settings.supabase_anon_key:
        logger.error("SUPABASE_URL / SUPABASE_ANON_KEY not set; rejecting request")
        raise HTTPException(status_code=401, detail="Authentication not configured")

    try:
        client = create_client(settings.supabase_url, settings.supabase_anon_key)
        user_response = client.auth.get_user(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    if user_response is None or user_response.user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return user_response.user
