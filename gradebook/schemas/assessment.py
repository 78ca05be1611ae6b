# gradebook/schemas/assessment.py

from datetime import datetime, timezone
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

QuestionTypeName = Literal["multiple_choice", "true_false", "short_answer"]


def _due_in_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store due dates in UTC; a naive value is taken as UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =========================
# Authoring
# =========================
class OptionCreate(BaseModel):
    option_text: str = Field(..., max_length=500)
    is_correct: bool = False

    @field_validator("option_text")
    @classmethod
    def option_text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("option needs text")
        return value.strip()


class QuestionCreate(BaseModel):
    question_text: str
    question_type: QuestionTypeName = "multiple_choice"
    points: float = Field(10, gt=0)
    options: List[OptionCreate] = Field(default_factory=list)

    @field_validator("question_text")
    @classmethod
    def question_text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question needs text")
        return value.strip()

    @model_validator(mode="after")
    def check_options(self) -> "QuestionCreate":
        """Objective questions need exactly one correct option; short answers none."""
        if self.question_type == "short_answer":
            if self.options:
                raise ValueError("short answer questions take no options")
            return self

        if self.question_type == "true_false" and len(self.options) != 2:
            raise ValueError("true/false questions need exactly 2 options")
        if len(self.options) < 2:
            raise ValueError("multiple choice questions need at least 2 options")

        correct = sum(1 for o in self.options if o.is_correct)
        if correct != 1:
            raise ValueError(f"question needs exactly one correct option, got {correct}")
        return self


class AssessmentCreate(BaseModel):
    school_id: UUID
    teacher_id: UUID

    title: str = Field(..., max_length=255)
    description: Optional[str] = None
    subject: Optional[str] = Field(None, max_length=100)
    due_date: Optional[datetime] = None
    max_score: int = Field(100, ge=1)

    questions: List[QuestionCreate] = Field(..., min_length=1)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Please provide an assessment title")
        return value.strip()

    due_date_utc = field_validator("due_date")(_due_in_utc)


class AssessmentUpdate(BaseModel):
    teacher_id: UUID

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    subject: Optional[str] = Field(None, max_length=100)
    due_date: Optional[datetime] = None
    max_score: Optional[int] = Field(None, ge=1)

    # replaces every question when given
    questions: Optional[List[QuestionCreate]] = Field(None, min_length=1)

    due_date_utc = field_validator("due_date")(_due_in_utc)


# =========================
# Reading (student-safe: no correctness flags)
# =========================
class OptionRead(BaseModel):
    id: UUID
    option_text: str

    class Config:
        from_attributes = True


class QuestionRead(BaseModel):
    id: UUID
    question_text: str
    question_type: QuestionTypeName
    points: float
    options: List[OptionRead] = Field(default_factory=list)

    class Config:
        from_attributes = True


class AssessmentRead(BaseModel):
    id: UUID
    school_id: UUID
    teacher_id: UUID
    title: str
    description: Optional[str] = None
    subject: Optional[str] = None
    due_date: Optional[datetime] = None
    max_score: int
    total_points: float
    questions: List[QuestionRead]


# =========================
# Student assessment list
# =========================
class SubmissionSummary(BaseModel):
    id: UUID
    score: Optional[int] = None
    completed: bool
    submitted_at: Optional[datetime] = None


class StudentAssessmentItem(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    subject: Optional[str] = None
    due_date: Optional[datetime] = None
    max_score: int
    bucket: Literal["completed", "due_soon", "upcoming", "past_due", "no_due_date"]
    submission: Optional[SubmissionSummary] = None


# =========================
# Teacher assessment list
# =========================
class TeacherAssessmentItem(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    subject: Optional[str] = None
    due_date: Optional[datetime] = None
    max_score: int
    question_count: int
    total_points: float
    # distinct students with a submission
    submission_count: int
    created_at: datetime
