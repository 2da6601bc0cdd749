"""
Stage engine (internal library): job lifecycle state machine.
Pure ordering/progress rules in stages, DB-bound transitions in engine,
worker-facing adapters in callbacks.
"""
from babypeek.pipeline.callbacks import WorkerCallbacks
from babypeek.pipeline.engine import (
    ALL_VARIANTS_FAILED_MESSAGE,
    DEFAULT_FAILURE_MESSAGE,
    StageEngine,
)
from babypeek.pipeline.errors import (
    InvalidTransition,
    JobNotFound,
    StageError,
    StaleRun,
    TotalFailure,
)
from babypeek.pipeline.models import CallbackOutcome, JobSnapshot, VariantPayload
from babypeek.pipeline.stages import JobStage, JobStatus

__all__ = [
    "ALL_VARIANTS_FAILED_MESSAGE",
    "DEFAULT_FAILURE_MESSAGE",
    "CallbackOutcome",
    "InvalidTransition",
    "JobNotFound",
    "JobSnapshot",
    "JobStage",
    "JobStatus",
    "StageEngine",
    "StageError",
    "StaleRun",
    "TotalFailure",
    "VariantPayload",
    "WorkerCallbacks",
]
