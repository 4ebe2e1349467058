"""OSM sync orchestrator.

Drives one SyncJob through its stages and is the only writer of the
job's status/progress/message while it runs:

    downloading       0 -> 30   bytes received / content length
    importing        30 -> 70   heuristic, one nudge per osm2pgsql line
    generating_tiles 70 -> 95   heuristic, one nudge per tilemaker line
    completed             100   then best-effort tile server restart

Neither external tool reports percentages, so progress inside the import
and tile stages only shows that work is happening. It never goes
backwards and never leaves its stage's slice.
"""

import asyncio
import logging
import random
from pathlib import Path
from typing import Optional, Set

import httpx

from osm_sync.jobs.errors import JobCancelledError
from osm_sync.jobs.models import JobStatus, SyncJob
from osm_sync.jobs.registry import JobRegistry
from osm_sync.osm.commands import StageCommands, restart_tile_server, run_streaming
from osm_sync.osm.presets import Preset
from osm_sync.osm.transfer import download_extract, extract_filename, transfer_progress
from osm_sync.storage.osm_files import OsmDataStore

logger = logging.getLogger(__name__)

IMPORT_RANGE = (30, 70)
TILES_RANGE = (70, 95)

# Largest heuristic bump per output line
HINT_STEP = 3


class SyncOrchestrator:
    """Starts, runs and cancels sync jobs."""

    def __init__(
        self,
        registry: JobRegistry,
        data_store: OsmDataStore,
        commands: StageCommands,
        http_client: Optional[httpx.AsyncClient] = None,
        rng: Optional[random.Random] = None,
    ):
        self._registry = registry
        self._data_store = data_store
        self._commands = commands
        self._http_client = http_client
        self._rng = rng or random.Random()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def registry(self) -> JobRegistry:
        return self._registry

    def start(self, preset: Preset) -> SyncJob:
        """Register a job and launch its stages in the background.

        Returns as soon as the job exists; pollers follow it by id.
        Raises SyncConflictError if another job is still running.
        """
        job = self._registry.create(preset.name, preset.url)
        task = asyncio.create_task(self.run_sync(job, preset.url), name=f"osm-sync-{job.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    def cancel(self, job_id: str) -> SyncJob:
        """Cancel a job. Cancelling a finished job leaves it untouched."""
        job = self._registry.get(job_id)
        if job.cancel():
            logger.info("Sync job %s cancelled", job.id)
        return job

    async def shutdown(self) -> None:
        for job in self._registry.list():
            job.cancel()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def run_sync(self, job: SyncJob, download_url: str) -> None:
        """Run every stage for job; always leaves it in a terminal state."""
        download_path = self._data_store.download_path(extract_filename(download_url))
        try:
            self._data_store.ensure_dirs()
            await self._transfer(job, download_url, download_path)
            self._link_current(job, download_path)
            await self._import(job, download_path)
            await self._generate_tiles(job, download_path)
            await self._complete(job)
        except JobCancelledError:
            logger.info("Sync job %s stopped after cancellation", job.id)
        except Exception as exc:
            if job.is_terminal:
                # A cancelled job's subprocess dies from SIGTERM; keep "cancelled"
                logger.info("Sync job %s stage ended after cancellation: %s", job.id, exc)
            else:
                logger.exception("Sync job %s failed", job.id)
                job.mark_failed(str(exc))
        finally:
            job.detach_process()

    # Stages

    async def _transfer(self, job: SyncJob, url: str, dest: Path) -> None:
        self._enter_stage(job, JobStatus.DOWNLOADING, 0, "Downloading OSM data...")
        job.append_log(f"Starting download from {url}")

        def on_progress(received: int, total: Optional[int]) -> None:
            if job.is_terminal:
                return
            pct = transfer_progress(received, total)
            if pct is not None:
                job.set_progress(pct)
                job.message = f"Downloading: {job.progress}%"

        await download_extract(
            url,
            dest,
            on_progress=on_progress,
            cancel_event=job.cancel_event,
            client=self._http_client,
        )
        job.append_log(f"Download complete: {dest}")

    def _link_current(self, job: SyncJob, download_path: Path) -> None:
        try:
            self._data_store.link_current(download_path)
        except OSError as exc:
            logger.warning("Could not link %s: %s", self._data_store.current_extract, exc)
            job.append_log(f"Warning: Could not create symlink: {exc}")

    async def _import(self, job: SyncJob, pbf: Path) -> None:
        self._enter_stage(job, JobStatus.IMPORTING, IMPORT_RANGE[0], "Importing to database...")
        job.append_log("Starting osm2pgsql import")
        await self._run_command(
            job,
            self._commands.import_argv(pbf),
            "Importing",
            IMPORT_RANGE[1],
            env=self._commands.environment(),
        )
        job.append_log("Import complete")

    async def _generate_tiles(self, job: SyncJob, pbf: Path) -> None:
        self._enter_stage(job, JobStatus.GENERATING_TILES, TILES_RANGE[0], "Generating map tiles...")
        job.append_log("Starting tile generation")
        await self._run_command(
            job,
            self._commands.tiles_argv(pbf, self._data_store.tile_package),
            "Generating tiles",
            TILES_RANGE[1],
        )
        job.append_log("Tile generation complete")

    async def _complete(self, job: SyncJob) -> None:
        if job.is_terminal:
            raise JobCancelledError()
        job.mark_completed()
        job.message = "Sync complete! Restarting services..."
        job.append_log("Sync completed successfully")
        logger.info("Sync job %s completed", job.id)

        if not self._commands.restart_command:
            job.append_log("Tile server restart skipped (no command configured)")
        elif await restart_tile_server(self._commands.restart_command):
            job.append_log("Tile server restarted")
        else:
            job.append_log("Note: Tile server restart failed - start manually")

    # Helpers

    def _enter_stage(self, job: SyncJob, status: JobStatus, progress: int, message: str) -> None:
        if job.is_terminal:
            raise JobCancelledError()
        logger.info("Sync job %s -> %s", job.id, status.value)
        job.status = status
        job.set_progress(progress)
        job.message = message

    async def _run_command(self, job, argv, label: str, ceiling: int, env=None) -> None:
        def on_line(line: str) -> None:
            if job.is_terminal:
                return
            job.append_log(line)
            job.message = f"{label}: {line}"
            job.set_progress(min(ceiling, job.progress + self._rng.randint(0, HINT_STEP)))

        def on_start(process) -> None:
            job.attach_process(process)
            if job.is_terminal:
                # cancelled while the process was being spawned
                process.terminate()

        try:
            await run_streaming(argv, on_line, on_start=on_start, env=env)
        finally:
            job.detach_process()
