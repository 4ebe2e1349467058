"""Job storage interface and in-process implementation."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from osm_sync.jobs.models import SyncJob


class JobStore(ABC):
    """Abstract backing store for sync jobs (in-memory or persistent)."""

    @abstractmethod
    def put(self, job: SyncJob) -> None:
        """Insert or replace a job."""
        ...

    @abstractmethod
    def get(self, job_id: str) -> Optional[SyncJob]:
        ...

    @abstractmethod
    def values(self) -> List[SyncJob]:
        """All jobs in insertion order."""
        ...

    @abstractmethod
    def delete(self, job_id: str) -> None:
        ...


class InMemoryJobStore(JobStore):
    """Process-local store. Job history is lost on restart."""

    def __init__(self):
        self._jobs: Dict[str, SyncJob] = {}

    def put(self, job: SyncJob) -> None:
        self._jobs[job.id] = job

    def get(self, job_id: str) -> Optional[SyncJob]:
        return self._jobs.get(job_id)

    def values(self) -> List[SyncJob]:
        return list(self._jobs.values())

    def delete(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)

    def __len__(self) -> int:
        return len(self._jobs)
