import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from gradebook.db.base import Base


def now_utc():
    return datetime.now(timezone.utc)


class QuestionType:
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"

    OBJECTIVE = (MULTIPLE_CHOICE, TRUE_FALSE)
    ALL = (MULTIPLE_CHOICE, TRUE_FALSE, SHORT_ANSWER)


class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    school_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    teacher_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    subject = Column(String(100), nullable=True)

    due_date = Column(DateTime(timezone=True), nullable=True)
    max_score = Column(Integer, nullable=False, default=100)

    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    questions = relationship(
        "Question",
        back_populates="assessment",
        order_by="Question.position",
        cascade="all, delete-orphan",
    )
    # deleting an assessment removes every submission and its responses
    submissions = relationship(
        "Submission",
        back_populates="assessment",
        cascade="all, delete-orphan",
    )


class Question(Base):
    __tablename__ = "quiz_questions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    assessment_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("assessments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    question_text = Column(Text, nullable=False)
    question_type = Column(String(20), nullable=False)
    points = Column(Float, nullable=False, default=10.0)
    position = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    assessment = relationship("Assessment", back_populates="questions")
    options = relationship(
        "Option",
        back_populates="question",
        order_by="Option.position",
        cascade="all, delete-orphan",
    )

    @property
    def is_objective(self) -> bool:
        return self.question_type in QuestionType.OBJECTIVE

    def __repr__(self):
        return f"<Question {self.id}: {self.question_text[:50]}>"


class Option(Base):
    __tablename__ = "quiz_options"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    question_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("quiz_questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    option_text = Column(String(500), nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=False, default=0)

    question = relationship("Question", back_populates="options")
