"""
Shared test fixtures.

Provides: temp OSM data layout, registry, stage commands backed by short
python scripts, MockTransport-based httpx clients
Dependencies: pytest, httpx
"""

import sys
from types import SimpleNamespace
from typing import Callable, List, Optional

import httpx
import pytest

from osm_sync.jobs.registry import JobRegistry
from osm_sync.osm.commands import StageCommands
from osm_sync.storage.osm_files import OsmDataStore


def python_command(script: str) -> List[str]:
    """Command prefix that runs an inline python script."""
    return [sys.executable, "-c", script]


# Prints a few osm2pgsql-like lines on both streams, then succeeds
IMPORT_OK = (
    "import sys\n"
    "for i in range(5):\n"
    "    print(f'Processing: Node({i}k)', flush=True)\n"
    "print('Reading input files done', file=sys.stderr, flush=True)\n"
)

# Writes the --output file like tilemaker and succeeds
TILES_OK = (
    "import sys\n"
    "out = sys.argv[sys.argv.index('--output') + 1]\n"
    "for z in range(4):\n"
    "    print(f'Zoom level {z}', flush=True)\n"
    "open(out, 'wb').write(b'mbtiles')\n"
)

FAIL_WITH_1 = "import sys\nprint('Reading input', flush=True)\nsys.exit(1)\n"

# Announces itself, then idles until killed
HANG = "import time\nprint('started', flush=True)\ntime.sleep(60)\n"


@pytest.fixture
def data_store(tmp_path):
    store = OsmDataStore(tmp_path / "osm-data")
    store.ensure_dirs()
    return store


@pytest.fixture
def registry():
    return JobRegistry(retention_hours=24, max_retained=50, log_limit=2000)


@pytest.fixture
def make_commands() -> Callable[..., StageCommands]:
    def _make(
        import_script: str = IMPORT_OK,
        tiles_script: str = TILES_OK,
        restart: Optional[List[str]] = None,
    ) -> StageCommands:
        return StageCommands(
            import_command=python_command(import_script),
            tiles_command=python_command(tiles_script),
            restart_command=restart if restart is not None else python_command("pass"),
        )

    return _make


@pytest.fixture
def extract_url():
    return "https://download.example.org/north-america/us/texas-latest.osm.pbf"


@pytest.fixture
def scripts():
    return SimpleNamespace(
        import_ok=IMPORT_OK,
        tiles_ok=TILES_OK,
        fail_with_1=FAIL_WITH_1,
        hang=HANG,
        python_command=python_command,
    )


@pytest.fixture
def payload_client():
    """Factory for AsyncClients whose every GET returns body with a correct Content-Length."""

    def _make(body: bytes = b"x" * 1000, status_code: int = 200) -> httpx.AsyncClient:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code, content=body)

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make
