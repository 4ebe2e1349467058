import asyncio

import httpx
import pytest

from osm_sync.jobs.errors import JobCancelledError, TransferError
from osm_sync.osm.transfer import download_extract, extract_filename, transfer_progress


@pytest.mark.parametrize(
    "received, total, expected",
    [
        (0, 1000, 0),
        (500, 1000, 15),
        (999, 1000, 29),
        (1000, 1000, 30),
        (2000, 1000, 30),
        (500, None, None),
        (500, 0, None),
    ],
)
def test_transfer_progress(received, total, expected):
    assert transfer_progress(received, total) == expected


def test_extract_filename():
    assert extract_filename("https://download.geofabrik.de/us/texas-latest.osm.pbf?x=1") == "texas-latest.osm.pbf"
    assert extract_filename("https://example.org/") == "extract.osm.pbf"


@pytest.mark.asyncio
async def test_download_reports_progress_per_chunk(tmp_path, payload_client):
    dest = tmp_path / "texas.osm.pbf"
    seen = []

    async with payload_client(b"x" * 1000) as client:
        written = await download_extract(
            "https://x/texas.osm.pbf",
            dest,
            on_progress=lambda received, total: seen.append(transfer_progress(received, total)),
            client=client,
            chunk_bytes=250,
        )

    assert written == 1000
    assert dest.read_bytes() == b"x" * 1000
    assert seen == [7, 15, 22, 30]
    assert not (tmp_path / "texas.osm.pbf.part").exists()


@pytest.mark.asyncio
async def test_half_delivered_body_reads_15_percent(tmp_path):
    def handler(request):
        return httpx.Response(200, headers={"Content-Length": "1000"}, content=b"x" * 500)

    seen = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        await download_extract(
            "https://x/texas.osm.pbf",
            tmp_path / "texas.osm.pbf",
            on_progress=lambda received, total: seen.append(transfer_progress(received, total)),
            client=client,
        )

    assert seen[-1] == 15


@pytest.mark.asyncio
async def test_http_error_status_raises(tmp_path, payload_client):
    dest = tmp_path / "missing.osm.pbf"
    async with payload_client(b"not found", status_code=404) as client:
        with pytest.raises(TransferError, match="HTTP 404"):
            await download_extract("https://x/missing.osm.pbf", dest, client=client)
    assert not dest.exists()


@pytest.mark.asyncio
async def test_network_error_raises_transfer_error(tmp_path):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(TransferError, match="connection refused"):
            await download_extract("https://x/texas.osm.pbf", tmp_path / "t.osm.pbf", client=client)


@pytest.mark.asyncio
async def test_cancel_event_aborts_transfer(tmp_path):
    cancel_event = asyncio.Event()

    async def body():
        for _ in range(50):
            yield b"x" * 10
            cancel_event.set()

    def handler(request):
        return httpx.Response(200, content=body())

    dest = tmp_path / "texas.osm.pbf"
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(JobCancelledError):
            await download_extract(
                "https://x/texas.osm.pbf", dest, cancel_event=cancel_event, client=client
            )

    assert not dest.exists()
    assert not (tmp_path / "texas.osm.pbf.part").exists()
