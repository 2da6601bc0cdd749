import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from babypeek.models.job import Job
from babypeek.models.preference import PREFERENCE_REASONS, Preference
from babypeek.models.result import Result
from babypeek.services.errors import Conflict, ValidationFailed

logger = logging.getLogger(__name__)


class PreferenceService:
    """Which variant the user liked best. Write-once per job, never gates access."""

    def __init__(self, db: Session):
        self.db = db

    def get_for_job(self, job_id: str) -> Preference | None:
        return self.db.query(Preference).filter(Preference.job_id == job_id).one_or_none()

    def record(
        self,
        job: Job,
        selected_result_id: str,
        reason: str | None = None,
        shown_variants: list[str] | None = None,
    ) -> Preference:
        if reason is not None and reason not in PREFERENCE_REASONS:
            raise ValidationFailed(f"unknown reason: {reason}")
        result = (
            self.db.query(Result)
            .filter(Result.job_id == job.id, Result.id == selected_result_id)
            .one_or_none()
        )
        if result is None:
            raise ValidationFailed("selected result does not belong to this job")
        if self.get_for_job(job.id) is not None:
            raise Conflict("Preference already recorded for this job.")

        preference = Preference(
            job_id=job.id,
            selected_result_id=result.id,
            selected_variant_descriptor=result.variant_descriptor,
            reason=reason,
            shown_variants=list(shown_variants or []),
        )
        try:
            self.db.add(preference)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict("Preference already recorded for this job.") from None
        self.db.refresh(preference)
        logger.info(
            "preference_recorded",
            extra={"job_id": job.id, "result_id": result.id, "reason": reason},
        )
        return preference
