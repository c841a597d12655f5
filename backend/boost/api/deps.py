from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models.run import Run


def parse_uuid(value: str, label: str = "ID") -> UUID:
    """Path and query ids arrive as strings; malformed ones are a 400, not a 422."""
    try:
        return UUID(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"Invalid {label}")


def get_run_or_404(db: Session, run_id: str) -> Run:
    run = db.query(Run).filter(Run.id == parse_uuid(run_id, "run ID")).first()
    if not run:
        raise HTTPException(status_code=404, detail="Run not found")
    return run


def get_owned_run_or_404(db: Session, run_id: str, user_id: UUID) -> Run:
    """Runs owned by someone else look missing."""
    run = get_run_or_404(db, run_id)
    if run.user_id != user_id:
        raise HTTPException(status_code=404, detail="Not found")
    return run
