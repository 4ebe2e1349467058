"""Transfer stage: stream a remote extract to local storage."""

import asyncio
import logging
import os
from pathlib import Path, PurePosixPath
from typing import Callable, Optional
from urllib.parse import urlparse

import httpx

from osm_sync.config import settings
from osm_sync.jobs.errors import JobCancelledError, TransferError

logger = logging.getLogger(__name__)

# fn(bytes_received, content_length or None)
TransferProgress = Callable[[int, Optional[int]], None]

TRANSFER_CEILING = 30


def transfer_progress(received: int, total: Optional[int], ceiling: int = TRANSFER_CEILING) -> Optional[int]:
    """Map bytes received onto the 0..ceiling slice of overall progress.

    Returns None when the content length is unknown.
    """
    if not total or total <= 0:
        return None
    return min(ceiling, (ceiling * received) // total)


def extract_filename(url: str) -> str:
    name = PurePosixPath(urlparse(url).path).name
    return name or "extract.osm.pbf"


def _content_length(response: httpx.Response) -> Optional[int]:
    raw = response.headers.get("Content-Length")
    try:
        return int(raw) if raw is not None else None
    except ValueError:
        return None


async def download_extract(
    url: str,
    dest: Path,
    on_progress: Optional[TransferProgress] = None,
    cancel_event: Optional[asyncio.Event] = None,
    client: Optional[httpx.AsyncClient] = None,
    chunk_bytes: Optional[int] = None,
) -> int:
    """Download url to dest, returning the number of bytes written.

    Data lands in ``dest.part`` and is renamed on success, so dest never
    holds a truncated file. The cancel event is checked between chunks.

    Raises:
        TransferError: non-2xx status, network error or timeout
        JobCancelledError: cancel_event was set mid-transfer
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    part_path = dest.with_name(dest.name + ".part")
    chunk_bytes = chunk_bytes or settings.download_chunk_bytes

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.download_timeout_seconds, connect=30.0),
            follow_redirects=True,
        )

    received = 0
    try:
        async with client.stream("GET", url) as response:
            if not response.is_success:
                raise TransferError(
                    f"Download failed: HTTP {response.status_code} from {url}"
                )
            total = _content_length(response)
            logger.info("Downloading %s (%s bytes)", url, total if total is not None else "unknown")

            with open(part_path, "wb") as fh:
                async for chunk in response.aiter_bytes(chunk_bytes):
                    if cancel_event is not None and cancel_event.is_set():
                        raise JobCancelledError("Download cancelled")
                    await asyncio.to_thread(fh.write, chunk)
                    received += len(chunk)
                    if on_progress is not None:
                        on_progress(received, total)

        os.replace(part_path, dest)
    except httpx.HTTPError as exc:
        raise TransferError(f"Download failed: {exc}") from exc
    finally:
        part_path.unlink(missing_ok=True)
        if owns_client:
            await client.aclose()

    logger.info("Download complete: %s (%d bytes)", dest, received)
    return received
