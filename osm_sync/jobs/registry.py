"""Job registry: id -> SyncJob map enforcing a single running sync.

Both the import stage and the tile stage write to fixed paths
(current.osm.pbf, world.mbtiles), so two jobs running at once would
clobber each other. create() refuses to start a second job while any
job is non-terminal.
"""

import logging
import time
from datetime import timedelta
from threading import RLock
from typing import List, Optional

from osm_sync.jobs.errors import JobNotFoundError, SyncConflictError
from osm_sync.jobs.models import SyncJob, utcnow
from osm_sync.jobs.store import InMemoryJobStore, JobStore

logger = logging.getLogger(__name__)


class JobRegistry:
    """Single source of truth for sync jobs.

    - create() is check-and-insert with no suspension point, so it is
      atomic for coroutines; the lock covers threaded callers
    - terminal jobs are evicted by age and count on each create()
    """

    def __init__(
        self,
        store: Optional[JobStore] = None,
        retention_hours: int = 24,
        max_retained: int = 50,
        log_limit: int = 2000,
    ):
        self._store = store if store is not None else InMemoryJobStore()
        self._retention_hours = retention_hours
        self._max_retained = max_retained
        self._log_limit = log_limit
        self._lock = RLock()
        self._last_id = 0

    def create(self, preset_name: str, download_url: str) -> SyncJob:
        with self._lock:
            active = self.find_active()
            if active is not None:
                raise SyncConflictError(active.id)

            self.evict_expired()

            job = SyncJob(
                id=self._next_id(),
                preset_name=preset_name,
                download_url=download_url,
                log_limit=self._log_limit,
            )
            self._store.put(job)
            logger.info("Created sync job %s for %s", job.id, preset_name)
            return job

    def get(self, job_id: str) -> SyncJob:
        job = self._store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def find_active(self) -> Optional[SyncJob]:
        for job in self._store.values():
            if not job.is_terminal:
                return job
        return None

    def list(self) -> List[SyncJob]:
        return self._store.values()

    def evict_expired(self, now=None) -> int:
        """Drop terminal jobs past the retention window or over the cap."""
        with self._lock:
            now = now or utcnow()
            terminal = [j for j in self._store.values() if j.is_terminal]
            doomed = []

            if self._retention_hours > 0:
                cutoff = now - timedelta(hours=self._retention_hours)
                doomed = [
                    j for j in terminal
                    if j.completed_at is not None and j.completed_at < cutoff
                ]

            doomed_ids = {j.id for j in doomed}
            survivors = [j for j in terminal if j.id not in doomed_ids]
            if self._max_retained > 0 and len(survivors) > self._max_retained:
                doomed.extend(survivors[: len(survivors) - self._max_retained])

            for job in doomed:
                self._store.delete(job.id)
            if doomed:
                logger.info("Evicted %d finished sync job(s)", len(doomed))
            return len(doomed)

    def _next_id(self) -> str:
        # Millisecond timestamp, bumped so ids stay unique within one process
        candidate = int(time.time() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        while self._store.get(str(candidate)) is not None:
            candidate += 1
        self._last_id = candidate
        return str(candidate)
