from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from gradebook.api.errors import http_error
from gradebook.core.errors import GradebookError
from gradebook.db.session import get_db
from gradebook.schemas.submission import (
    AttemptStartRequest,
    AttemptStartResponse,
    SubmitRequest,
    SubmitResponse,
)
from gradebook.services.attempts import AttemptService

router = APIRouter(prefix="/assessments", tags=["Attempts"])


# -------------------------------------------------
# POST: Start attempt
# -------------------------------------------------
@router.post(
    "/{assessment_id}/attempts",
    response_model=AttemptStartResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_attempt(
    assessment_id: UUID,
    payload: AttemptStartRequest,
    db: Session = Depends(get_db),
):
    """
    Start taking an assessment.

    409 with the submission id when the student already completed it, so
    the client can go straight to the results.
    """
    try:
        handle = AttemptService.start_attempt(db, assessment_id, payload.student_id)
    except GradebookError as exc:
        raise http_error(exc)

    return AttemptStartResponse(
        assessment_id=handle.assessment_id,
        student_id=handle.student_id,
        started_at=handle.started_at,
        submission_id=handle.submission_id,
        assessment=handle.assessment,
    )


# -------------------------------------------------
# POST: Submit attempt
# -------------------------------------------------
@router.post("/{assessment_id}/submit", response_model=SubmitResponse)
def submit_attempt(
    assessment_id: UUID,
    payload: SubmitRequest,
    db: Session = Depends(get_db),
):
    try:
        handle = AttemptService.resume(db, assessment_id, payload)
        return AttemptService.submit_attempt(db, handle)
    except GradebookError as exc:
        raise http_error(exc)
