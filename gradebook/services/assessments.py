import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import distinct, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from gradebook.core.config import settings
from gradebook.core.errors import (
    AssessmentLockedError,
    GradebookError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    StoreUnavailableError,
)
from gradebook.db.retry import run_with_retry
from gradebook.engine.lifecycle import as_utc
from gradebook.engine.scorer import raw_max
from gradebook.models import Assessment, Option, Question, Submission
from gradebook.schemas.assessment import (
    AssessmentCreate,
    AssessmentRead,
    AssessmentUpdate,
    QuestionCreate,
    QuestionRead,
    StudentAssessmentItem,
    SubmissionSummary,
    TeacherAssessmentItem,
)

logger = logging.getLogger(__name__)


def _build_questions(questions: List[QuestionCreate]) -> List[Question]:
    built = []
    for position, q in enumerate(questions):
        built.append(
            Question(
                question_text=q.question_text,
                question_type=q.question_type,
                points=q.points,
                position=position,
                options=[
                    Option(option_text=o.option_text, is_correct=o.is_correct, position=i)
                    for i, o in enumerate(q.options)
                ],
            )
        )
    return built


class AssessmentService:
    @staticmethod
    def get(db: Session, assessment_id: UUID) -> Assessment:
        """Load an assessment with its questions and options, in order."""

        def load():
            return db.execute(
                select(Assessment)
                .options(selectinload(Assessment.questions).selectinload(Question.options))
                .where(Assessment.id == assessment_id)
            ).scalar_one_or_none()

        assessment = run_with_retry(db, load, "load assessment")
        if assessment is None:
            raise NotFoundError("Assessment not found")
        return assessment

    @staticmethod
    def require_owner(assessment: Assessment, teacher_id: UUID) -> None:
        if assessment.teacher_id != teacher_id:
            raise PermissionDeniedError("Only the assessment's teacher can do this")

    @staticmethod
    def has_completed_submissions(db: Session, assessment_id: UUID) -> bool:
        def check():
            return db.execute(
                select(Submission.id)
                .where(Submission.assessment_id == assessment_id)
                .where(Submission.completed.is_(True))
                .limit(1)
            ).first() is not None

        return run_with_retry(db, check, "check submissions")

    @staticmethod
    def to_read(assessment: Assessment) -> AssessmentRead:
        """Student-safe view: options come without their correctness flag."""
        return AssessmentRead(
            id=assessment.id,
            school_id=assessment.school_id,
            teacher_id=assessment.teacher_id,
            title=assessment.title,
            description=assessment.description,
            subject=assessment.subject,
            due_date=as_utc(assessment.due_date),
            max_score=assessment.max_score,
            total_points=raw_max(assessment.questions),
            questions=[QuestionRead.model_validate(q) for q in assessment.questions],
        )

    # ==============================
    # Authoring
    # ==============================
    @staticmethod
    def create(db: Session, payload: AssessmentCreate) -> Assessment:
        def save():
            # built per try: a rollback discards the pending rows
            assessment = Assessment(
                school_id=payload.school_id,
                teacher_id=payload.teacher_id,
                title=payload.title,
                description=payload.description or None,
                subject=payload.subject or None,
                due_date=payload.due_date,
                max_score=payload.max_score,
                questions=_build_questions(payload.questions),
            )
            db.add(assessment)
            db.commit()
            return assessment

        try:
            assessment = run_with_retry(db, save, "create assessment")
        except StoreUnavailableError as exc:
            raise PersistenceError("Failed to create assessment, please retry") from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to create assessment %r", payload.title)
            raise PersistenceError("Failed to create assessment") from exc

        logger.info(
            "Created assessment %s with %d questions (max_score=%d)",
            assessment.id,
            len(payload.questions),
            assessment.max_score,
        )
        return AssessmentService.get(db, assessment.id)

    @staticmethod
    def update(db: Session, assessment_id: UUID, payload: AssessmentUpdate) -> Assessment:
        """
        Update an assessment.

        Title, description, subject and due date can always change. Changing
        max_score or replacing the questions would silently re-scale or
        invalidate stored submissions, so both are refused once a student has
        completed the assessment (unless the lock is disabled in settings).
        """
        changes = payload.model_dump(exclude_unset=True, exclude={"teacher_id", "questions"})

        def save():
            # load, check and apply on every try: a rollback discards the edits
            assessment = AssessmentService.get(db, assessment_id)
            AssessmentService.require_owner(assessment, payload.teacher_id)

            rescoring = (
                ("max_score" in changes and changes["max_score"] != assessment.max_score)
                or payload.questions is not None
            )
            if (
                rescoring
                and settings.LOCK_ASSESSMENT_AFTER_SUBMISSION
                and AssessmentService.has_completed_submissions(db, assessment_id)
            ):
                raise AssessmentLockedError(
                    "Assessment has completed submissions; max score and questions are locked"
                )

            for field, value in changes.items():
                if field in ("title", "max_score") and value is None:
                    continue
                setattr(assessment, field, value)

            if payload.questions is not None:
                assessment.questions = _build_questions(payload.questions)

            db.commit()
            return assessment

        try:
            run_with_retry(db, save, "update assessment")
        except StoreUnavailableError as exc:
            raise PersistenceError("Failed to update assessment, please retry") from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to update assessment %s", assessment_id)
            raise PersistenceError("Failed to update assessment") from exc
        except GradebookError:
            db.rollback()
            raise

        logger.info("Updated assessment %s (%s)", assessment_id, ", ".join(sorted(changes)) or "questions")
        return AssessmentService.get(db, assessment_id)

    @staticmethod
    def delete(db: Session, assessment_id: UUID, teacher_id: UUID) -> None:
        """Delete an assessment together with its questions and every submission."""

        def remove():
            assessment = AssessmentService.get(db, assessment_id)
            AssessmentService.require_owner(assessment, teacher_id)
            db.delete(assessment)
            db.commit()
            return assessment

        try:
            assessment = run_with_retry(db, remove, "delete assessment")
        except StoreUnavailableError as exc:
            raise PersistenceError("Failed to delete assessment, please retry") from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to delete assessment %s", assessment_id)
            raise PersistenceError("Failed to delete assessment") from exc

        logger.info("Teacher %s deleted assessment %r (%s)", teacher_id, assessment.title, assessment_id)

    # ==============================
    # Teacher listing
    # ==============================
    @staticmethod
    def list_for_teacher(
        db: Session,
        teacher_id: UUID,
        search: Optional[str] = None,
    ) -> List[TeacherAssessmentItem]:
        """
        A teacher's assessments, newest first, each with the number of
        students who submitted. `search` matches title or subject,
        case-insensitively.
        """

        def load():
            query = (
                select(Assessment)
                .options(selectinload(Assessment.questions))
                .where(Assessment.teacher_id == teacher_id)
                .order_by(Assessment.created_at.desc())
            )
            term = (search or "").strip()
            if term:
                pattern = f"%{term}%"
                query = query.where(
                    or_(Assessment.title.ilike(pattern), Assessment.subject.ilike(pattern))
                )
            assessments = db.execute(query).scalars().all()

            counts = dict(
                db.execute(
                    select(Submission.assessment_id, func.count(distinct(Submission.student_id)))
                    .where(Submission.assessment_id.in_([a.id for a in assessments]))
                    .group_by(Submission.assessment_id)
                ).all()
            )
            return assessments, counts

        assessments, counts = run_with_retry(db, load, "load assessments")

        return [
            TeacherAssessmentItem(
                id=a.id,
                title=a.title,
                description=a.description,
                subject=a.subject,
                due_date=as_utc(a.due_date),
                max_score=a.max_score,
                question_count=len(a.questions),
                total_points=raw_max(a.questions),
                submission_count=counts.get(a.id, 0),
                created_at=as_utc(a.created_at),
            )
            for a in assessments
        ]

    # ==============================
    # Student listing
    # ==============================
    @staticmethod
    def list_for_student(
        db: Session,
        school_id: UUID,
        student_id: UUID,
        now: Optional[datetime] = None,
    ) -> List[StudentAssessmentItem]:
        now = as_utc(now) or datetime.now(timezone.utc)

        def load():
            assessments = db.execute(
                select(Assessment)
                .where(Assessment.school_id == school_id)
                .order_by(Assessment.due_date.is_(None), Assessment.due_date, Assessment.created_at)
            ).scalars().all()
            submissions = db.execute(
                select(Submission)
                .where(Submission.student_id == student_id)
                .where(Submission.assessment_id.in_([a.id for a in assessments]))
            ).scalars().all()
            return assessments, submissions

        assessments, submissions = run_with_retry(db, load, "load assessments")
        by_assessment = {s.assessment_id: s for s in submissions}

        items = []
        for assessment in assessments:
            submission = by_assessment.get(assessment.id)
            due_date = as_utc(assessment.due_date)
            items.append(
                StudentAssessmentItem(
                    id=assessment.id,
                    title=assessment.title,
                    description=assessment.description,
                    subject=assessment.subject,
                    due_date=due_date,
                    max_score=assessment.max_score,
                    bucket=_bucket(due_date, submission, now),
                    submission=SubmissionSummary(
                        id=submission.id,
                        score=submission.score,
                        completed=submission.completed,
                        submitted_at=as_utc(submission.submitted_at),
                    ) if submission else None,
                )
            )
        return items


def _bucket(due_date: Optional[datetime], submission: Optional[Submission], now: datetime) -> str:
    """
    Bucket of one assessment in a student's list.

    "Due soon" means due on the same calendar day as `now`, compared in UTC,
    so around midnight the label follows the UTC day rather than the
    student's local one.
    """
    if submission is not None and submission.completed:
        return "completed"
    if due_date is None:
        return "no_due_date"
    if due_date.date() == now.date():
        return "due_soon"
    if due_date < now:
        return "past_due"
    return "upcoming"
