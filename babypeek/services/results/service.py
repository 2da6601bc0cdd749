from sqlalchemy.orm import Session

from babypeek.models.result import Result


class ResultService:
    """Read side of the Result store. Rows are written only by the stage engine."""

    def __init__(self, db: Session):
        self.db = db

    def list_for_job(self, job_id: str) -> list[Result]:
        return (
            self.db.query(Result)
            .filter(Result.job_id == job_id)
            .order_by(Result.variant_index.asc())
            .all()
        )

    def get(self, result_id: str) -> Result | None:
        return self.db.query(Result).filter(Result.id == result_id).one_or_none()

    def get_for_job(self, job_id: str, result_id: str) -> Result | None:
        return (
            self.db.query(Result)
            .filter(Result.job_id == job_id, Result.id == result_id)
            .one_or_none()
        )
