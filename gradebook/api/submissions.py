from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gradebook.api.errors import http_error
from gradebook.core.errors import GradebookError
from gradebook.db.session import get_db
from gradebook.schemas.submission import (
    FeedbackRequest,
    GradeRequest,
    GradeResponse,
    ReviewRequest,
    SubmissionResult,
)
from gradebook.services.grading import GradingService
from gradebook.services.results import ResultsService

router = APIRouter(prefix="/submissions", tags=["Submissions"])


@router.get("/{submission_id}", response_model=SubmissionResult)
def get_results(submission_id: UUID, db: Session = Depends(get_db)):
    try:
        return ResultsService.get_results(db, submission_id)
    except GradebookError as exc:
        raise http_error(exc)


@router.put(
    "/{submission_id}/responses/{question_id}/grade",
    response_model=GradeResponse,
)
def grade_short_answer(
    submission_id: UUID,
    question_id: UUID,
    payload: GradeRequest,
    db: Session = Depends(get_db),
):
    try:
        return GradingService.grade_short_answer(
            db, submission_id, question_id, payload.points, payload.teacher_id
        )
    except GradebookError as exc:
        raise http_error(exc)


@router.put("/{submission_id}/feedback", response_model=GradeResponse)
def save_feedback(
    submission_id: UUID,
    payload: FeedbackRequest,
    db: Session = Depends(get_db),
):
    try:
        return GradingService.save_feedback(db, submission_id, payload.feedback, payload.teacher_id)
    except GradebookError as exc:
        raise http_error(exc)


@router.put("/{submission_id}/review", response_model=GradeResponse)
def save_review(
    submission_id: UUID,
    payload: ReviewRequest,
    db: Session = Depends(get_db),
):
    try:
        return GradingService.save_review(
            db, submission_id, payload.scores, payload.feedback, payload.teacher_id
        )
    except GradebookError as exc:
        raise http_error(exc)
