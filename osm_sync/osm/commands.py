"""Import and tile-generation stages: external tools run as subprocesses.

osm2pgsql and tilemaker print free-form progress, not percentages, so
each output line is only forwarded as a hint.
"""

import asyncio
import logging
import os
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from osm_sync.config import Settings
from osm_sync.jobs.errors import CommandFailedError

logger = logging.getLogger(__name__)

# Progress bars are redrawn with \r, often without any \n
_READ_CHUNK = 64 * 1024
_MAX_LINE = 64 * 1024
_LINE_BREAK = re.compile(rb"[\r\n]")


@dataclass
class StageCommands:
    """Command lines for the external stages.

    The extract path is appended to import_command; tiles_command gets
    ``--input <pbf> --output <mbtiles> --verbose``. An empty
    restart_command disables the post-sync tile server restart.
    """
    import_command: List[str]
    tiles_command: List[str]
    restart_command: List[str] = field(default_factory=list)
    import_env: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> "StageCommands":
        import_env = {}
        if settings.osm_db_password:
            import_env["PGPASSWORD"] = settings.osm_db_password
        return cls(
            import_command=[settings.import_command, *shlex.split(settings.import_args)],
            tiles_command=[settings.tiles_command],
            restart_command=shlex.split(settings.tile_server_restart_command),
            import_env=import_env,
        )

    def import_argv(self, pbf: Path) -> List[str]:
        return [*self.import_command, str(pbf)]

    def tiles_argv(self, pbf: Path, mbtiles: Path) -> List[str]:
        return [*self.tiles_command, "--input", str(pbf), "--output", str(mbtiles), "--verbose"]

    def environment(self) -> Optional[Dict[str, str]]:
        if not self.import_env:
            return None
        return {**os.environ, **self.import_env}


async def _pump(stream: asyncio.StreamReader, on_line: Callable[[str], None]) -> None:
    pending = b""
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        pending += chunk
        *complete, pending = _LINE_BREAK.split(pending)
        for raw in complete:
            _emit(raw, on_line)
        if len(pending) > _MAX_LINE:
            # no separator in sight; hand over what we have
            _emit(pending, on_line)
            pending = b""
    _emit(pending, on_line)


def _emit(raw: bytes, on_line: Callable[[str], None]) -> None:
    segment = raw.decode("utf-8", errors="replace").strip()
    if segment:
        on_line(segment)


async def run_streaming(
    argv: List[str],
    on_line: Callable[[str], None],
    on_start: Optional[Callable[[Any], None]] = None,
    env: Optional[Dict[str, str]] = None,
) -> None:
    """Run argv, forwarding every stdout/stderr line to on_line.

    on_start receives the Process right after spawn so the caller can
    signal it. If this coroutine is cancelled, or on_line raises, the
    child is killed and reaped before the exception propagates.

    Raises:
        CommandFailedError: the command exited non-zero
        OSError: the binary could not be started
    """
    command = Path(argv[0]).name
    logger.info("Running %s", " ".join(argv))
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env,
    )
    if on_start is not None:
        on_start(process)

    pumps = [
        asyncio.ensure_future(_pump(process.stdout, on_line)),
        asyncio.ensure_future(_pump(process.stderr, on_line)),
    ]
    try:
        await asyncio.gather(*pumps)
        returncode = await process.wait()
    finally:
        # never leave the child or a reader running
        for task in pumps:
            task.cancel()
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
        await asyncio.gather(*pumps, return_exceptions=True)

    if returncode != 0:
        raise CommandFailedError(command, returncode)


async def restart_tile_server(argv: List[str]) -> bool:
    """Best-effort restart of the tile server. Never raises."""
    if not argv:
        return False
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
    except OSError as exc:
        logger.warning("Tile server restart failed: %s", exc)
        return False

    if process.returncode != 0:
        logger.warning(
            "Tile server restart exited with code %s: %s",
            process.returncode,
            stderr.decode("utf-8", errors="replace").strip(),
        )
        return False
    return True
