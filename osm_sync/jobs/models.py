"""Sync job record: the mutable state one sync attempt reports to pollers."""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, PrivateAttr


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    INITIALIZING = "initializing"
    DOWNLOADING = "downloading"
    IMPORTING = "importing"
    GENERATING_TILES = "generating_tiles"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}
)


class SyncJob(BaseModel):
    """Tracks one download -> import -> tiles attempt.

    The orchestrator is the only writer once the job is running. The
    subprocess handle and cancel event are private and never serialized.
    """
    id: str
    preset_name: str
    download_url: str
    status: JobStatus = JobStatus.INITIALIZING
    progress: int = 0
    message: str = "Preparing to download..."
    log: List[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    log_limit: int = Field(default=2000, exclude=True)

    _process: Any = PrivateAttr(default=None)
    _cancel_event: asyncio.Event = PrivateAttr(default_factory=asyncio.Event)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def process(self) -> Any:
        return self._process

    @property
    def cancel_event(self) -> asyncio.Event:
        return self._cancel_event

    def append_log(self, text: str) -> None:
        """Append a timestamped line, dropping the oldest past log_limit."""
        self.log.append(f"[{utcnow().isoformat()}] {text}")
        overflow = len(self.log) - self.log_limit
        if self.log_limit > 0 and overflow > 0:
            del self.log[:overflow]

    def set_progress(self, value: int) -> None:
        # Progress only moves forward
        value = max(0, min(100, int(value)))
        if value > self.progress:
            self.progress = value

    def attach_process(self, process: Any) -> None:
        self._process = process

    def detach_process(self) -> None:
        self._process = None

    def mark_completed(self) -> None:
        self.status = JobStatus.COMPLETED
        self.progress = 100
        self.completed_at = utcnow()

    def mark_failed(self, error: str) -> None:
        self.status = JobStatus.FAILED
        self.error = error
        self.message = f"Failed: {error}"
        self.completed_at = utcnow()
        self.append_log(f"ERROR: {error}")
        self.detach_process()

    def cancel(self) -> bool:
        """Cancel the job if it is still running.

        Sends SIGTERM to the tracked subprocess (if any) and wakes the
        transfer stage through the cancel event. Returns False without
        touching anything when the job was already terminal.
        """
        if self.is_terminal:
            return False

        self._cancel_event.set()
        process = self._process
        if process is not None and process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                # exited between the returncode check and the signal
                pass

        self.status = JobStatus.CANCELLED
        self.message = "Job cancelled by user"
        self.completed_at = utcnow()
        self.append_log("Job cancelled by user")
        return True

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "preset": self.preset_name,
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
        }

    def to_status(self, log_tail: int = 50) -> Dict[str, Any]:
        """Polling projection: every public field, log cut to the newest entries."""
        return {
            "id": self.id,
            "preset": self.preset_name,
            "downloadUrl": self.download_url,
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
            "startedAt": self.started_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
            "log": self.log[-log_tail:] if log_tail > 0 else [],
        }
