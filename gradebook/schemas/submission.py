# gradebook/schemas/submission.py

from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from gradebook.schemas.assessment import AssessmentRead

StateName = Literal["not_started", "in_progress", "completed", "graded"]
ResponseStatus = Literal["correct", "incorrect", "ungraded"]


# =========================
# Taking an assessment
# =========================
class AttemptStartRequest(BaseModel):
    student_id: UUID


class AttemptStartResponse(BaseModel):
    assessment_id: UUID
    student_id: UUID
    started_at: datetime
    submission_id: Optional[UUID] = None
    assessment: AssessmentRead


class AnswerIn(BaseModel):
    question_id: UUID
    selected_option_id: Optional[UUID] = None
    text_response: Optional[str] = None


class SubmitRequest(BaseModel):
    """Answers held by the client since the attempt started."""
    student_id: UUID
    started_at: datetime
    answers: List[AnswerIn] = Field(default_factory=list)


class ResponseResult(BaseModel):
    question_id: UUID
    question_text: str
    question_type: str
    points: float

    selected_option_id: Optional[UUID] = None
    selected_option_text: Optional[str] = None
    correct_option_id: Optional[UUID] = None
    text_response: Optional[str] = None

    is_correct: Optional[bool] = None
    points_earned: Optional[float] = None
    status: ResponseStatus


class SubmitResponse(BaseModel):
    message: str = "Assessment submitted successfully"
    submission_id: UUID
    score: int
    max_score: int
    percentage: float
    submitted_at: datetime
    time_spent: int
    responses: List[ResponseResult]


class SubmissionResult(BaseModel):
    submission_id: UUID
    assessment_id: UUID
    assessment_title: str
    student_id: UUID

    state: StateName
    completed: bool
    submitted_at: Optional[datetime] = None
    time_spent: int
    average_time_per_question: int

    score: int
    max_score: int
    percentage: float
    raw_total: float
    raw_max: float

    feedback: Optional[str] = None
    message: str
    responses: List[ResponseResult]


# =========================
# Teacher grading
# =========================
class GradeRequest(BaseModel):
    teacher_id: UUID
    points: float


class FeedbackRequest(BaseModel):
    teacher_id: UUID
    feedback: str


class ReviewRequest(BaseModel):
    teacher_id: UUID
    scores: Dict[UUID, float] = Field(default_factory=dict)
    feedback: Optional[str] = None


class GradeResponse(BaseModel):
    submission_id: UUID
    score: int
    max_score: int
    percentage: float
    feedback: Optional[str] = None
    state: StateName


# =========================
# Class results
# =========================
class SubmissionRow(BaseModel):
    submission_id: UUID
    student_id: UUID
    completed: bool
    state: StateName
    score: Optional[int] = None
    percentage: Optional[float] = None
    submitted_at: Optional[datetime] = None
    time_spent: Optional[int] = None


class ResultsStats(BaseModel):
    average_score: float
    highest_score: int
    lowest_score: int
    completion_rate: float
    submission_count: int
    completed_count: int


class ClassResults(BaseModel):
    assessment_id: UUID
    title: str
    subject: Optional[str] = None
    due_date: Optional[datetime] = None
    max_score: int
    total_points: float
    question_count: int
    stats: ResultsStats
    submissions: List[SubmissionRow]
