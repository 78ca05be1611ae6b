import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from gradebook.core.errors import (
    AlreadySubmittedError,
    IncompleteAttemptError,
    PersistenceError,
    StoreUnavailableError,
)
from gradebook.db.retry import run_with_retry
from gradebook.engine.lifecycle import as_utc, elapsed_seconds
from gradebook.engine.scorer import (
    PENDING_MANUAL,
    auto_grade,
    is_answered,
    score_percentage,
    score_submission,
)
from gradebook.models import Assessment, QuestionType, Response, Submission
from gradebook.schemas.assessment import AssessmentRead
from gradebook.schemas.submission import SubmitRequest, SubmitResponse
from gradebook.services.assessments import AssessmentService
from gradebook.services.results import build_response_results

logger = logging.getLogger(__name__)


@dataclass
class Answer:
    selected_option_id: Optional[UUID] = None
    text_response: Optional[str] = None


@dataclass
class AttemptHandle:
    """
    Client-side state of an attempt between start and submit.

    Nothing here is persisted until submit_attempt; answers can be changed
    freely until then.
    """
    assessment_id: UUID
    student_id: UUID
    started_at: datetime
    question_types: Dict[UUID, str] = field(default_factory=dict)
    answers: Dict[UUID, Answer] = field(default_factory=dict)
    submission_id: Optional[UUID] = None
    assessment: Optional[AssessmentRead] = field(default=None, repr=False)

    def record_answer(self, question_id: UUID, value: Any) -> None:
        """
        Record the student's current answer to one question.

        Objective questions take an option id, short answers take text.
        Answers to questions outside the assessment are logged and ignored.
        """
        question_type = self.question_types.get(question_id)
        if question_type is None:
            logger.warning(
                "Ignoring answer to unknown question %s on assessment %s",
                question_id,
                self.assessment_id,
            )
            return

        if question_type == QuestionType.SHORT_ANSWER:
            if value is not None and not isinstance(value, str):
                logger.warning("Ignoring non-text answer %r to short answer question %s", value, question_id)
                value = None
            self.answers[question_id] = Answer(text_response=value or None)
            return

        selected = None
        if value:
            try:
                selected = value if isinstance(value, UUID) else UUID(str(value))
            except ValueError:
                logger.warning("Ignoring malformed option id %r for question %s", value, question_id)
        self.answers[question_id] = Answer(selected_option_id=selected)

    def answer_for(self, question_id: UUID) -> Answer:
        return self.answers.get(question_id) or Answer()


class AttemptService:
    @staticmethod
    def _find_submission(db: Session, assessment_id: UUID, student_id: UUID) -> Optional[Submission]:
        return db.execute(
            select(Submission)
            .where(Submission.assessment_id == assessment_id)
            .where(Submission.student_id == student_id)
        ).scalar_one_or_none()

    @staticmethod
    def _handle_for(assessment: Assessment, student_id: UUID, started_at: datetime) -> AttemptHandle:
        return AttemptHandle(
            assessment_id=assessment.id,
            student_id=student_id,
            started_at=started_at,
            question_types={q.id: q.question_type for q in assessment.questions},
        )

    # ==============================
    # not_started -> in_progress
    # ==============================
    @staticmethod
    def start_attempt(
        db: Session,
        assessment_id: UUID,
        student_id: UUID,
        now: Optional[datetime] = None,
    ) -> AttemptHandle:
        """
        Begin (or resume) an attempt. No row is written.

        Raises AlreadySubmittedError when the student already completed the
        assessment; the error carries the submission id for the results view.
        """
        assessment = AssessmentService.get(db, assessment_id)
        existing = run_with_retry(
            db,
            lambda: AttemptService._find_submission(db, assessment_id, student_id),
            "load existing submission",
        )
        if existing is not None and existing.completed:
            raise AlreadySubmittedError(existing.id)

        started_at = as_utc(now) or datetime.now(timezone.utc)
        if existing is not None and existing.started_at is not None:
            started_at = as_utc(existing.started_at)

        handle = AttemptService._handle_for(assessment, student_id, started_at)
        handle.submission_id = existing.id if existing is not None else None
        handle.assessment = AssessmentService.to_read(assessment)

        logger.info("Student %s started assessment %s", student_id, assessment_id)
        return handle

    @staticmethod
    def resume(db: Session, assessment_id: UUID, payload: SubmitRequest) -> AttemptHandle:
        """Rebuild a handle from the answers a client sends with its submit."""
        assessment = AssessmentService.get(db, assessment_id)
        handle = AttemptService._handle_for(assessment, payload.student_id, as_utc(payload.started_at))
        for answer in payload.answers:
            if handle.question_types.get(answer.question_id) == QuestionType.SHORT_ANSWER:
                handle.record_answer(answer.question_id, answer.text_response)
            else:
                handle.record_answer(answer.question_id, answer.selected_option_id)
        return handle

    # ==============================
    # in_progress -> completed
    # ==============================
    @staticmethod
    def submit_attempt(
        db: Session,
        handle: AttemptHandle,
        now: Optional[datetime] = None,
    ) -> SubmitResponse:
        """
        Submit an attempt: validate, auto-grade, score and persist in one go.

        Completeness is checked here again, whatever the client did. The
        submission only counts as completed once the commit succeeded.
        """
        assessment = AssessmentService.get(db, handle.assessment_id)
        questions = assessment.questions

        # -------------------------------
        # 1. Every question answered
        # -------------------------------
        unanswered = [
            q.id for q in questions
            if not is_answered(
                q,
                handle.answer_for(q.id).selected_option_id,
                handle.answer_for(q.id).text_response,
            )
        ]
        if unanswered:
            raise IncompleteAttemptError(unanswered)

        submitted_at = as_utc(now) or datetime.now(timezone.utc)
        time_spent = elapsed_seconds(handle.started_at, submitted_at)

        # -------------------------------
        # 2. Auto-grade objective questions
        # -------------------------------
        graded = {}
        for q in questions:
            answer = handle.answer_for(q.id)
            if q.is_objective:
                outcome = auto_grade(q, q.options, answer.selected_option_id)
            else:
                outcome = PENDING_MANUAL
            graded[q.id] = (answer, outcome)

        # -------------------------------
        # 3. Upsert submission + responses, one commit
        # -------------------------------
        def write() -> Submission:
            submission = db.execute(
                select(Submission)
                .where(Submission.assessment_id == handle.assessment_id)
                .where(Submission.student_id == handle.student_id)
                .with_for_update()
            ).scalar_one_or_none()

            if submission is not None and submission.completed:
                raise AlreadySubmittedError(submission.id)

            if submission is None:
                submission = Submission(
                    assessment_id=handle.assessment_id,
                    student_id=handle.student_id,
                )
                db.add(submission)

            submission.started_at = handle.started_at
            submission.completed = True
            submission.submitted_at = submitted_at
            submission.time_spent = time_spent

            existing = {r.question_id: r for r in submission.responses}
            for question_id, (answer, outcome) in graded.items():
                response = existing.get(question_id)
                if response is None:
                    response = Response(question_id=question_id)
                    submission.responses.append(response)
                response.selected_option_id = answer.selected_option_id
                response.text_response = answer.text_response
                response.is_correct = outcome.is_correct
                response.points_earned = outcome.points_earned

            submission.score = score_submission(questions, submission.responses, assessment.max_score)
            db.commit()
            return submission

        try:
            submission = run_with_retry(db, write, "submit assessment")
        except IntegrityError as exc:
            # a concurrent submit won the unique (assessment, student) row
            db.rollback()
            winner = AttemptService._find_submission(db, handle.assessment_id, handle.student_id)
            if winner is not None and winner.completed:
                raise AlreadySubmittedError(winner.id) from exc
            logger.exception("Submit failed for student %s", handle.student_id)
            raise PersistenceError("Failed to submit, please retry") from exc
        except StoreUnavailableError as exc:
            raise PersistenceError("Failed to submit, please retry") from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Submit failed for student %s", handle.student_id)
            raise PersistenceError("Failed to submit, please retry") from exc

        logger.info(
            "Student %s completed assessment %s: score=%d/%d time_spent=%ds",
            handle.student_id,
            handle.assessment_id,
            submission.score,
            assessment.max_score,
            time_spent,
        )

        return SubmitResponse(
            submission_id=submission.id,
            score=submission.score,
            max_score=assessment.max_score,
            percentage=score_percentage(submission.score, assessment.max_score),
            submitted_at=submitted_at,
            time_spent=time_spent,
            responses=build_response_results(questions, submission.responses),
        )
