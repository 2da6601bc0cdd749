"""
Stage order, progress floors and transition checks.
Pure functions, no I/O: the engine applies them under a row lock.
"""
from __future__ import annotations

from enum import Enum

from babypeek.pipeline.errors import InvalidTransition


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStage(str, Enum):
    VALIDATING = "validating"
    GENERATING = "generating"
    FIRST_READY = "first_ready"
    STORING = "storing"
    WATERMARKING = "watermarking"
    COMPLETE = "complete"
    FAILED = "failed"


# Strict total order; a pending job has stage None
STAGE_ORDER: tuple[JobStage, ...] = (
    JobStage.VALIDATING,
    JobStage.GENERATING,
    JobStage.FIRST_READY,
    JobStage.STORING,
    JobStage.WATERMARKING,
    JobStage.COMPLETE,
)

TERMINAL_STAGES = frozenset({JobStage.COMPLETE, JobStage.FAILED})

# Stages that need every attempted variant to have terminated
FINALIZATION_STAGES = frozenset({JobStage.STORING, JobStage.WATERMARKING, JobStage.COMPLETE})

# Stages during which variant outcomes are accepted
VARIANT_STAGES = frozenset({JobStage.GENERATING, JobStage.FIRST_READY})

STAGE_PROGRESS_FLOOR: dict[JobStage, int] = {
    JobStage.VALIDATING: 10,
    JobStage.GENERATING: 20,
    JobStage.FIRST_READY: 40,
    JobStage.STORING: 70,
    JobStage.WATERMARKING: 90,
    JobStage.COMPLETE: 100,
}

VARIANT_PROGRESS_BASE = 20
VARIANT_PROGRESS_SPAN = 70


def parse_stage(value: str | JobStage | None) -> JobStage | None:
    if value is None or isinstance(value, JobStage):
        return value
    try:
        return JobStage(value)
    except ValueError:
        raise InvalidTransition(f"unknown stage: {value}", to_stage=str(value)) from None


def next_stage(current: JobStage | None) -> JobStage | None:
    """Next stage in order; None after a terminal stage."""
    if current is None:
        return STAGE_ORDER[0]
    if current in TERMINAL_STAGES:
        return None
    return STAGE_ORDER[STAGE_ORDER.index(current) + 1]


def check_transition(current: JobStage | None, target: JobStage) -> None:
    """
    Raise InvalidTransition unless target is reachable from current in one step.
    failed is reachable from every non-terminal stage, including pending (None).
    """
    current_value = current.value if current else None
    if current in TERMINAL_STAGES:
        raise InvalidTransition(
            f"job is terminal at {current_value}",
            from_stage=current_value,
            to_stage=target.value,
        )
    if target == JobStage.FAILED:
        return
    expected = next_stage(current)
    if target != expected:
        kind = "regress" if _position(target) <= _position(current) else "skip"
        raise InvalidTransition(
            f"cannot {kind} from {current_value} to {target.value}",
            from_stage=current_value,
            to_stage=target.value,
        )


def status_for_stage(stage: JobStage | None) -> JobStatus:
    if stage is None:
        return JobStatus.PENDING
    if stage == JobStage.COMPLETE:
        return JobStatus.COMPLETED
    if stage == JobStage.FAILED:
        return JobStatus.FAILED
    return JobStatus.PROCESSING


def variant_progress(terminated: int, variant_count: int) -> int:
    """Share of the generation span covered by variants that already terminated."""
    if variant_count <= 0 or terminated <= 0:
        return 0
    terminated = min(terminated, variant_count)
    return VARIANT_PROGRESS_BASE + (VARIANT_PROGRESS_SPAN * terminated) // variant_count


def compute_progress(
    current: int,
    stage: JobStage | None,
    terminated: int = 0,
    variant_count: int = 0,
    hint: int | None = None,
) -> int:
    """
    Monotonic progress: max of current value, stage floor, variant share and hint.
    Only complete reports 100; failed keeps the last value.
    """
    if stage == JobStage.FAILED:
        return current
    if stage == JobStage.COMPLETE:
        return 100
    candidates = [current, STAGE_PROGRESS_FLOOR.get(stage, 0) if stage else 0]
    if stage in VARIANT_STAGES or stage in FINALIZATION_STAGES:
        candidates.append(variant_progress(terminated, variant_count))
    if hint is not None:
        candidates.append(max(0, min(hint, 99)))
    return min(max(candidates), 99)


def _position(stage: JobStage | None) -> int:
    if stage is None:
        return -1
    if stage == JobStage.FAILED:
        return len(STAGE_ORDER)
    return STAGE_ORDER.index(stage)
