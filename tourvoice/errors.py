"""Domain exceptions for generation jobs and CLI diagnostics."""

from __future__ import annotations


class PipelineStageError(RuntimeError):
    """Raised when a specific generation stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped pipeline error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


class TotalAudioFailureError(PipelineStageError):
    """Raised when a job finishes both phases without any usable narration audio."""

    def __init__(self, detail: str) -> None:
        """Initialize a finalize-stage failure."""

        super().__init__(
            stage="finalize",
            detail=detail,
            hint="Check speech provider configuration and retry with a new job.",
        )


class StoreError(RuntimeError):
    """Raised when the relational store cannot complete a read or write."""


class UploadError(RuntimeError):
    """Raised when narration audio cannot be uploaded to object storage."""


class JobConflictError(RuntimeError):
    """Raised when a non-terminal job already exists for the same tour owner.

    Callers should treat this as retryable once the in-flight job finishes.
    """

    def __init__(self, *, job_id: str, status: str) -> None:
        """Initialize conflict metadata for the in-flight job."""

        super().__init__(
            f"A generation job is already in progress for this jam (job `{job_id}`, "
            f"status `{status}`)."
        )
        self.job_id = job_id
        self.status = status
