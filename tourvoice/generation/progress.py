"""Job progress snapshots written for external pollers."""

from __future__ import annotations

from ..io.store import RelationalStore
from ..models.datatypes import GenerationJob
from ..telemetry.logger import RunLogger


def progress_percent(done_units: int, total_units: int) -> int:
    """Return `floor(done/total*100)` capped at 99 until finalization."""

    if total_units <= 0:
        return 0
    return min(99, (done_units * 100) // total_units)


class JobProgressTracker:
    """Overwrite the persisted job snapshot; readers always see the latest state.

    Terminal jobs are never reopened: updates addressed to a job that already
    reached `ready`, `ready_with_warnings`, or `failed` are ignored.
    """

    def __init__(self, store: RelationalStore, logger: RunLogger | None = None) -> None:
        self.store = store
        self.logger = logger

    def update(
        self,
        job_id: str,
        status: str,
        message: str,
        progress: int | None = None,
        *,
        error: str | None = None,
        clear_error: bool = False,
    ) -> GenerationJob | None:
        """Write a snapshot and return the stored job, or `None` when it was terminal.

        `error` is written when given; `clear_error` resets it to null.
        """

        current = self.store.get_job(job_id)
        if current is not None and current.is_terminal:
            if self.logger is not None:
                self.logger.log_event(
                    "job", "ignored_update", job=job_id, status=current.status, requested=status
                )
            return None

        if error is not None or clear_error:
            return self.store.update_job(
                job_id, status=status, message=message, progress=progress, error=error
            )
        return self.store.update_job(job_id, status=status, message=message, progress=progress)
