from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from gradebook.api.errors import http_error
from gradebook.core.errors import GradebookError
from gradebook.db.session import get_db
from gradebook.schemas.assessment import (
    AssessmentCreate,
    AssessmentRead,
    AssessmentUpdate,
    StudentAssessmentItem,
    TeacherAssessmentItem,
)
from gradebook.services.assessments import AssessmentService

router = APIRouter(tags=["Assessments"])


@router.post(
    "/assessments",
    response_model=AssessmentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_assessment(payload: AssessmentCreate, db: Session = Depends(get_db)):
    try:
        assessment = AssessmentService.create(db, payload)
    except GradebookError as exc:
        raise http_error(exc)
    return AssessmentService.to_read(assessment)


@router.get("/assessments/{assessment_id}", response_model=AssessmentRead)
def get_assessment(assessment_id: UUID, db: Session = Depends(get_db)):
    """Questions and options for taking the assessment; correct answers are never included."""
    try:
        assessment = AssessmentService.get(db, assessment_id)
    except GradebookError as exc:
        raise http_error(exc)
    return AssessmentService.to_read(assessment)


@router.patch("/assessments/{assessment_id}", response_model=AssessmentRead)
def update_assessment(
    assessment_id: UUID,
    payload: AssessmentUpdate,
    db: Session = Depends(get_db),
):
    try:
        assessment = AssessmentService.update(db, assessment_id, payload)
    except GradebookError as exc:
        raise http_error(exc)
    return AssessmentService.to_read(assessment)


@router.delete(
    "/assessments/{assessment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_assessment(
    assessment_id: UUID,
    teacher_id: UUID = Query(...),
    db: Session = Depends(get_db),
):
    """Delete an assessment; every student submission goes with it."""
    try:
        AssessmentService.delete(db, assessment_id, teacher_id)
    except GradebookError as exc:
        raise http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/teachers/{teacher_id}/assessments",
    response_model=List[TeacherAssessmentItem],
)
def list_teacher_assessments(
    teacher_id: UUID,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    try:
        return AssessmentService.list_for_teacher(db, teacher_id, search=search)
    except GradebookError as exc:
        raise http_error(exc)


@router.get(
    "/schools/{school_id}/students/{student_id}/assessments",
    response_model=List[StudentAssessmentItem],
)
def list_student_assessments(
    school_id: UUID,
    student_id: UUID,
    now: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    try:
        return AssessmentService.list_for_student(db, school_id, student_id, now=now)
    except GradebookError as exc:
        raise http_error(exc)
