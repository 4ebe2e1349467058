"""Errors raised by the job registry and the sync stages."""


class SyncConflictError(Exception):
    """Another sync job already holds the single-flight slot."""

    def __init__(self, active_job_id: str):
        super().__init__(f"Another sync job is already running: {active_job_id}")
        self.active_job_id = active_job_id


class JobNotFoundError(KeyError):
    def __init__(self, job_id: str):
        super().__init__(job_id)
        self.job_id = job_id

    def __str__(self) -> str:
        return f"Job {self.job_id} not found"


class TransferError(Exception):
    """The extract could not be fetched (HTTP status, network or timeout)."""


class CommandFailedError(Exception):
    """An external stage command exited with a non-zero code."""

    def __init__(self, command: str, returncode: int):
        super().__init__(f"{command} exited with code {returncode}")
        self.command = command
        self.returncode = returncode


class JobCancelledError(Exception):
    """Raised inside a stage once the job has been cancelled."""
