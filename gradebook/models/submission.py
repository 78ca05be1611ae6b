import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from gradebook.db.base import Base


def now_utc():
    return datetime.now(timezone.utc)


# =========================
# Submission (one per student per assessment)
# =========================
class Submission(Base):
    __tablename__ = "assessment_submissions"
    __table_args__ = (
        UniqueConstraint(
            "assessment_id", "student_id",
            name="unique_submission_per_student",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    assessment_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("assessments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed = Column(Boolean, nullable=False, default=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    time_spent = Column(Integer, nullable=True)

    # normalized onto assessment.max_score
    score = Column(Integer, nullable=True)

    feedback = Column(Text, nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    assessment = relationship("Assessment", back_populates="submissions")
    responses = relationship(
        "Response",
        back_populates="submission",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Submission {self.id}: {self.score}>"


# =========================
# Response (one per submission per question)
# =========================
class Response(Base):
    __tablename__ = "quiz_responses"
    __table_args__ = (
        UniqueConstraint(
            "submission_id", "question_id",
            name="unique_response_per_question",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    submission_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("assessment_submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    # kept without a foreign key so a stale option id is still auditable
    selected_option_id = Column(Uuid(as_uuid=True), nullable=True)
    text_response = Column(Text, nullable=True)

    is_correct = Column(Boolean, nullable=True)
    points_earned = Column(Float, nullable=True)

    submission = relationship("Submission", back_populates="responses")
