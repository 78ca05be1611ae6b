import logging
from datetime import datetime, timezone
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gradebook.core.errors import (
    GradebookError,
    InvalidGradeTargetError,
    PersistenceError,
    StoreUnavailableError,
    SubmissionNotCompletedError,
)
from gradebook.db.retry import run_with_retry
from gradebook.engine.lifecycle import derive_state
from gradebook.engine.scorer import manual_grade, score_percentage, score_submission
from gradebook.models import Assessment, QuestionType, Response, Submission
from gradebook.schemas.submission import GradeResponse
from gradebook.services.assessments import AssessmentService
from gradebook.services.results import ResultsService, pending_manual_count

logger = logging.getLogger(__name__)


class GradingService:
    """
    Teacher-side grading of completed submissions.

    Every public method is one explicit save: the touched responses, the
    recomputed score and any feedback are committed together or not at all.
    """

    @staticmethod
    def _load(db: Session, submission_id: UUID, teacher_id: UUID):
        submission = ResultsService.load_submission(db, submission_id)
        assessment = AssessmentService.get(db, submission.assessment_id)
        AssessmentService.require_owner(assessment, teacher_id)
        if not submission.completed:
            raise SubmissionNotCompletedError("Submission has not been completed yet")
        return submission, assessment

    @staticmethod
    def _apply_scores(submission: Submission, assessment: Assessment, scores: Dict[UUID, float]) -> None:
        questions = {q.id: q for q in assessment.questions}
        responses = {r.question_id: r for r in submission.responses}

        for question_id, value in scores.items():
            question = questions.get(question_id)
            if question is None:
                raise InvalidGradeTargetError(f"Question {question_id} is not part of this assessment")
            if question.question_type != QuestionType.SHORT_ANSWER:
                raise InvalidGradeTargetError("Only short answer questions are graded manually")

            outcome = manual_grade(question, value)
            response = responses.get(question_id)
            if response is None:
                response = Response(question_id=question_id)
                submission.responses.append(response)
            response.points_earned = outcome.points_earned
            response.is_correct = outcome.is_correct

    @staticmethod
    def _save(
        db: Session,
        submission_id: UUID,
        teacher_id: UUID,
        scores: Dict[UUID, float],
        feedback: Optional[str],
        description: str,
    ) -> GradeResponse:
        def write():
            submission, assessment = GradingService._load(db, submission_id, teacher_id)
            GradingService._apply_scores(submission, assessment, scores)
            if feedback is not None:
                submission.feedback = feedback
                submission.graded_at = datetime.now(timezone.utc)
            submission.score = score_submission(
                assessment.questions,
                submission.responses,
                assessment.max_score,
            )
            db.commit()
            return submission, assessment

        try:
            submission, assessment = run_with_retry(db, write, description)
        except StoreUnavailableError as exc:
            raise PersistenceError(f"Failed to {description}, please retry") from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to %s for submission %s", description, submission_id)
            raise PersistenceError(f"Failed to {description}, please retry") from exc
        except GradebookError:
            db.rollback()
            raise

        state = derive_state(submission, pending_manual_count(assessment.questions, submission.responses))
        logger.info(
            "Teacher %s saved %s for submission %s: score=%d/%d",
            teacher_id,
            description,
            submission_id,
            submission.score,
            assessment.max_score,
        )
        return GradeResponse(
            submission_id=submission.id,
            score=submission.score,
            max_score=assessment.max_score,
            percentage=score_percentage(submission.score, assessment.max_score),
            feedback=submission.feedback,
            state=state.status,
        )

    @staticmethod
    def grade_short_answer(
        db: Session,
        submission_id: UUID,
        question_id: UUID,
        points: float,
        teacher_id: UUID,
    ) -> GradeResponse:
        """Assign points to one short answer; out-of-range values are clamped."""
        return GradingService._save(
            db, submission_id, teacher_id, {question_id: points}, None, "save grade"
        )

    @staticmethod
    def save_feedback(db: Session, submission_id: UUID, feedback: str, teacher_id: UUID) -> GradeResponse:
        return GradingService._save(db, submission_id, teacher_id, {}, feedback, "save feedback")

    @staticmethod
    def save_review(
        db: Session,
        submission_id: UUID,
        scores: Dict[UUID, float],
        feedback: Optional[str],
        teacher_id: UUID,
    ) -> GradeResponse:
        """All manual scores and the feedback of the review screen in one save."""
        return GradingService._save(db, submission_id, teacher_id, scores, feedback, "save review")
