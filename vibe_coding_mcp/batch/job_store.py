"""In-memory table of batch jobs and their cancellation flags.

Mutated only from the event loop thread, between await points, so no locking
is needed. Nothing here survives a process restart.
"""

import itertools
import logging

from .models import Job
from .models import JobStatus

logger = logging.getLogger(__name__)


class JobStore:
    """Job records plus the cancellation flags of jobs still running.

    A flag exists only between ``start`` and ``finish``; a job without a flag
    is either unknown or terminal and cannot be cancelled.
    """

    def __init__(self, max_history: int = 100):
        self.max_history = max_history
        self._jobs: dict[str, Job] = {}
        self._cancel_flags: dict[str, bool] = {}
        self._sequence: dict[str, int] = {}
        self._counter = itertools.count()

    def start(self, job: Job) -> None:
        """Register a running job and give it a cleared cancellation flag."""
        self._jobs[job.id] = job
        self._sequence[job.id] = next(self._counter)
        self._cancel_flags[job.id] = False

    def is_cancelled(self, job_id: str) -> bool:
        return self._cancel_flags.get(job_id, False)

    def request_cancel(self, job_id: str) -> bool:
        """Set the cancellation flag; False if the job is unknown or finished."""
        if job_id not in self._cancel_flags:
            return False
        self._cancel_flags[job_id] = True
        logger.info("Cancellation requested for batch job %s", job_id)
        return True

    def finish(self, job: Job) -> None:
        """Drop the job's cancellation flag and keep the terminal record."""
        self._cancel_flags.pop(job.id, None)
        self._jobs[job.id] = job
        self._sequence.setdefault(job.id, next(self._counter))
        self._evict()

    def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def active_job_ids(self) -> list[str]:
        return list(self._cancel_flags)

    def history(self, limit: int | None = None, status: JobStatus | str | None = None) -> tuple[list[Job], int]:
        """Return ``(jobs, total)``, newest first.

        Without ``status`` only terminal jobs are listed. ``total`` counts
        matches before ``limit`` is applied.
        """
        if status is not None:
            wanted = JobStatus(status)
            jobs = [job for job in self._jobs.values() if job.status == wanted]
        else:
            jobs = [job for job in self._jobs.values() if job.status.is_terminal]

        jobs.sort(key=lambda job: (job.started_at is not None, job.started_at, self._sequence[job.id]), reverse=True)
        total = len(jobs)
        if limit is not None:
            jobs = jobs[: max(limit, 0)]
        return jobs, total

    def clear(self) -> None:
        self._jobs.clear()
        self._cancel_flags.clear()
        self._sequence.clear()

    def _evict(self) -> None:
        terminal = [job_id for job_id, job in self._jobs.items() if job.status.is_terminal]
        overflow = len(terminal) - self.max_history
        if overflow <= 0:
            return
        terminal.sort(key=lambda job_id: self._sequence[job_id])
        for job_id in terminal[:overflow]:
            del self._jobs[job_id]
            del self._sequence[job_id]

    def __len__(self) -> int:
        return len(self._jobs)
