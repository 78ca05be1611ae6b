import logging
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from gradebook.core.errors import NotFoundError
from gradebook.db.retry import run_with_retry
from gradebook.engine.lifecycle import as_utc, derive_state
from gradebook.engine.scorer import (
    performance_message,
    raw_max,
    raw_total,
    score_percentage,
)
from gradebook.models import Question, QuestionType, Response, Submission
from gradebook.schemas.submission import (
    ClassResults,
    ResponseResult,
    ResultsStats,
    SubmissionResult,
    SubmissionRow,
)
from gradebook.services.assessments import AssessmentService

logger = logging.getLogger(__name__)


def _status(is_correct: Optional[bool]) -> str:
    if is_correct is True:
        return "correct"
    if is_correct is False:
        return "incorrect"
    return "ungraded"


def build_response_results(
    questions: Iterable[Question],
    responses: Iterable[Response],
) -> List[ResponseResult]:
    """Per-question breakdown in question order; questions never answered show as ungraded."""
    by_question: Dict[UUID, Response] = {r.question_id: r for r in responses}

    results = []
    for q in questions:
        response = by_question.get(q.id)
        options = {o.id: o for o in q.options}
        correct = next((o for o in q.options if o.is_correct), None)
        selected = options.get(response.selected_option_id) if response else None

        results.append(
            ResponseResult(
                question_id=q.id,
                question_text=q.question_text,
                question_type=q.question_type,
                points=q.points,
                selected_option_id=response.selected_option_id if response else None,
                selected_option_text=selected.option_text if selected else None,
                correct_option_id=correct.id if correct else None,
                text_response=response.text_response if response else None,
                is_correct=response.is_correct if response else None,
                points_earned=response.points_earned if response else None,
                status=_status(response.is_correct if response else None),
            )
        )
    return results


def pending_manual_count(questions: Iterable[Question], responses: Iterable[Response]) -> int:
    """Short answer questions that still have no points assigned."""
    graded = {r.question_id for r in responses if r.points_earned is not None}
    return sum(
        1 for q in questions
        if q.question_type == QuestionType.SHORT_ANSWER and q.id not in graded
    )


class ResultsService:
    @staticmethod
    def load_submission(db: Session, submission_id: UUID) -> Submission:
        def load():
            return db.execute(
                select(Submission)
                .options(selectinload(Submission.responses))
                .where(Submission.id == submission_id)
            ).scalar_one_or_none()

        submission = run_with_retry(db, load, "load submission")
        if submission is None:
            raise NotFoundError("Submission not found")
        return submission

    @staticmethod
    def get_results(db: Session, submission_id: UUID) -> SubmissionResult:
        """
        Results of one submission. Read-only: the stored score is reported
        as-is, so repeated calls give identical output.
        """
        submission = ResultsService.load_submission(db, submission_id)
        assessment = AssessmentService.get(db, submission.assessment_id)
        questions = assessment.questions

        question_ids = {q.id for q in questions}
        responses = [r for r in submission.responses if r.question_id in question_ids]

        state = derive_state(submission, pending_manual_count(questions, responses))
        score = submission.score or 0
        percentage = score_percentage(score, assessment.max_score)
        time_spent = submission.time_spent or 0

        return SubmissionResult(
            submission_id=submission.id,
            assessment_id=assessment.id,
            assessment_title=assessment.title,
            student_id=submission.student_id,
            state=state.status,
            completed=submission.completed,
            submitted_at=as_utc(submission.submitted_at),
            time_spent=time_spent,
            average_time_per_question=time_spent // len(questions) if questions else 0,
            score=score,
            max_score=assessment.max_score,
            percentage=percentage,
            raw_total=raw_total(responses),
            raw_max=raw_max(questions),
            feedback=submission.feedback,
            message=performance_message(percentage),
            responses=build_response_results(questions, responses),
        )

    @staticmethod
    def class_results(db: Session, assessment_id: UUID, teacher_id: UUID) -> ClassResults:
        """All submissions of an assessment, newest first, with class statistics."""
        assessment = AssessmentService.get(db, assessment_id)
        AssessmentService.require_owner(assessment, teacher_id)
        questions = assessment.questions

        def load():
            return db.execute(
                select(Submission)
                .options(selectinload(Submission.responses))
                .where(Submission.assessment_id == assessment_id)
                .order_by(Submission.submitted_at.is_(None), Submission.submitted_at.desc())
            ).scalars().all()

        submissions = run_with_retry(db, load, "load submissions")

        rows = []
        for s in submissions:
            state = derive_state(s, pending_manual_count(questions, s.responses))
            rows.append(
                SubmissionRow(
                    submission_id=s.id,
                    student_id=s.student_id,
                    completed=s.completed,
                    state=state.status,
                    score=s.score if s.completed else None,
                    percentage=score_percentage(s.score, assessment.max_score) if s.completed else None,
                    submitted_at=as_utc(s.submitted_at),
                    time_spent=s.time_spent,
                )
            )

        return ClassResults(
            assessment_id=assessment.id,
            title=assessment.title,
            subject=assessment.subject,
            due_date=as_utc(assessment.due_date),
            max_score=assessment.max_score,
            total_points=raw_max(questions),
            question_count=len(questions),
            stats=class_stats(rows),
            submissions=rows,
        )


def class_stats(rows: List[SubmissionRow]) -> ResultsStats:
    scores = [r.score or 0 for r in rows if r.completed]
    if not rows:
        return ResultsStats(
            average_score=0.0,
            highest_score=0,
            lowest_score=0,
            completion_rate=0.0,
            submission_count=0,
            completed_count=0,
        )

    return ResultsStats(
        average_score=round(sum(scores) / len(scores), 2) if scores else 0.0,
        highest_score=max(scores) if scores else 0,
        lowest_score=min(scores) if scores else 0,
        completion_rate=round(len(scores) / len(rows) * 100, 2),
        submission_count=len(rows),
        completed_count=len(scores),
    )
