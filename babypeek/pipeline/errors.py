"""
Stage engine errors. None of them is fatal for a worker callback:
callbacks catch StageError, log it and leave the job in its last valid state.
"""


class StageError(Exception):
    """Base class for stage engine errors."""

    code = "stage_error"

    def __init__(self, message: str, job_id: str | None = None) -> None:
        super().__init__(message)
        self.job_id = job_id


class InvalidTransition(StageError):
    """Out-of-order, skipped, regressing or stale-run transition. The job is not mutated."""

    code = "invalid_transition"

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        from_stage: str | None = None,
        to_stage: str | None = None,
    ) -> None:
        super().__init__(message, job_id)
        self.from_stage = from_stage
        self.to_stage = to_stage


class StaleRun(InvalidTransition):
    """Callback belongs to a workflow run the job is no longer bound to."""

    code = "stale_run"


class JobNotFound(StageError):
    code = "job_not_found"


class TotalFailure(StageError):
    """Every attempted variant failed; converted to a failed job by the engine."""

    code = "total_failure"
