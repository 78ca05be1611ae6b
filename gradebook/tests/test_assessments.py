import uuid
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from gradebook.core.config import settings
from gradebook.core.errors import (
    AssessmentLockedError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
)
from gradebook.models import Assessment, Option, Question, Response, Submission
from gradebook.schemas.assessment import AssessmentCreate, AssessmentUpdate, QuestionCreate
from gradebook.services.assessments import AssessmentService
from gradebook.services.attempts import AttemptService
from gradebook.services.grading import GradingService
from gradebook.tests.helpers import assessment_payload, correct_option, mc, short, true_false


def complete(db, assessment, student_id, now):
    handle = AttemptService.start_attempt(db, assessment.id, student_id, now=now)
    for q in assessment.questions:
        handle.record_answer(q.id, correct_option(q).id if q.is_objective else "answer")
    return AttemptService.submit_attempt(db, handle, now=now)


def flaky_commit(db, monkeypatch, failures=1):
    """Make the next `failures` commits fail as a dropped connection would."""
    real_commit = db.commit
    calls = []

    def commit():
        calls.append(1)
        if len(calls) <= failures:
            raise OperationalError("COMMIT", {}, Exception("server closed the connection"))
        real_commit()

    monkeypatch.setattr(db, "commit", commit)
    return calls


def count(db, model):
    return db.scalar(select(func.count()).select_from(model))


# ==============================
# Validation
# ==============================
def test_objective_question_needs_exactly_one_correct_option():
    question = mc("Q1", 10)
    question["options"][1]["is_correct"] = True
    with pytest.raises(ValidationError, match="exactly one correct option"):
        QuestionCreate(**question)

    question = mc("Q1", 10)
    question["options"][0]["is_correct"] = False
    with pytest.raises(ValidationError, match="exactly one correct option"):
        QuestionCreate(**question)


def test_true_false_needs_two_options():
    question = true_false("The sky is blue", 5)
    question["options"].append({"option_text": "Maybe", "is_correct": False})
    with pytest.raises(ValidationError, match="exactly 2 options"):
        QuestionCreate(**question)


def test_multiple_choice_needs_two_options():
    with pytest.raises(ValidationError, match="at least 2 options"):
        QuestionCreate(**mc("Q1", 10, count=1))


def test_short_answer_takes_no_options():
    question = short("Explain", 10)
    question["options"] = [{"option_text": "x", "is_correct": True}]
    with pytest.raises(ValidationError, match="no options"):
        QuestionCreate(**question)


def test_points_must_be_positive():
    with pytest.raises(ValidationError):
        QuestionCreate(**short("Explain", 0))


def test_blank_texts_are_rejected(school_id, teacher_id):
    with pytest.raises(ValidationError, match="assessment title"):
        AssessmentCreate(**assessment_payload(school_id, teacher_id, [short("Explain", 10)], title="  "))

    question = mc("Q1", 10)
    question["options"][2]["option_text"] = " "
    with pytest.raises(ValidationError, match="option needs text"):
        QuestionCreate(**question)


def test_assessment_needs_questions(school_id, teacher_id):
    with pytest.raises(ValidationError):
        AssessmentCreate(**assessment_payload(school_id, teacher_id, []))


# ==============================
# Create / read
# ==============================
def test_create_keeps_question_order(make_assessment):
    assessment = make_assessment([short("First", 5), mc("Second", 10), true_false("Third", 5)])

    assert [q.question_text for q in assessment.questions] == ["First", "Second", "Third"]
    assert [q.position for q in assessment.questions] == [0, 1, 2]
    assert assessment.questions[1].options[0].option_text == "Second option 0"


def test_student_view_hides_correct_answers(make_assessment):
    read = AssessmentService.to_read(make_assessment([mc("Q1", 10), short("Explain", 5)]))

    assert read.total_points == 15
    dumped = read.model_dump()
    assert "is_correct" not in dumped["questions"][0]["options"][0]


def test_unknown_assessment(db):
    with pytest.raises(NotFoundError):
        AssessmentService.get(db, uuid.uuid4())


# ==============================
# Update and lock policy
# ==============================
def test_update_before_any_submission(db, make_assessment, teacher_id):
    assessment = make_assessment([mc("Q1", 10)])

    updated = AssessmentService.update(
        db,
        assessment.id,
        AssessmentUpdate(teacher_id=teacher_id, max_score=50, questions=[short("New", 4)]),
    )

    assert updated.max_score == 50
    assert [q.question_text for q in updated.questions] == ["New"]


def test_scoring_fields_lock_after_completion(db, make_assessment, teacher_id, student_id, now):
    assessment = make_assessment([mc("Q1", 10)])
    complete(db, assessment, student_id, now)

    with pytest.raises(AssessmentLockedError):
        AssessmentService.update(db, assessment.id, AssessmentUpdate(teacher_id=teacher_id, max_score=50))
    with pytest.raises(AssessmentLockedError):
        AssessmentService.update(
            db, assessment.id, AssessmentUpdate(teacher_id=teacher_id, questions=[short("New", 4)])
        )

    due = datetime(2026, 4, 1, tzinfo=timezone.utc)
    updated = AssessmentService.update(
        db,
        assessment.id,
        AssessmentUpdate(teacher_id=teacher_id, title="Renamed", due_date=due, max_score=100),
    )
    assert updated.title == "Renamed"
    assert updated.max_score == 100


def test_lock_can_be_disabled(db, make_assessment, teacher_id, student_id, now, monkeypatch):
    monkeypatch.setattr(settings, "LOCK_ASSESSMENT_AFTER_SUBMISSION", False)
    assessment = make_assessment([mc("Q1", 10)])
    complete(db, assessment, student_id, now)

    updated = AssessmentService.update(db, assessment.id, AssessmentUpdate(teacher_id=teacher_id, max_score=50))

    assert updated.max_score == 50


def test_only_the_owner_updates(db, make_assessment):
    assessment = make_assessment([mc("Q1", 10)])
    with pytest.raises(PermissionDeniedError):
        AssessmentService.update(db, assessment.id, AssessmentUpdate(teacher_id=uuid.uuid4(), title="Mine"))


# ==============================
# Student list
# ==============================
def test_student_list_buckets(db, make_assessment, school_id, student_id, now):
    make_assessment([mc("Q1", 10)], title="Today", due_date=datetime(2026, 3, 2, 23, 0, tzinfo=timezone.utc))
    make_assessment([mc("Q1", 10)], title="Yesterday", due_date=datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))
    make_assessment([mc("Q1", 10)], title="Next week", due_date=datetime(2026, 3, 9, 9, 0, tzinfo=timezone.utc))
    make_assessment([mc("Q1", 10)], title="Whenever")
    done = make_assessment(
        [mc("Q1", 10)], title="Done", due_date=datetime(2026, 2, 20, 9, 0, tzinfo=timezone.utc)
    )
    complete(db, done, student_id, now)

    items = AssessmentService.list_for_student(db, school_id, student_id, now=now)

    assert {i.title: i.bucket for i in items} == {
        "Today": "due_soon",
        "Yesterday": "past_due",
        "Next week": "upcoming",
        "Whenever": "no_due_date",
        "Done": "completed",
    }
    assert [i.title for i in items] == ["Done", "Yesterday", "Today", "Next week", "Whenever"]

    finished = next(i for i in items if i.title == "Done")
    assert finished.submission.completed is True
    assert finished.submission.score == 100


def test_student_list_is_per_school(db, make_assessment, student_id, now):
    make_assessment([mc("Q1", 10)])
    assert AssessmentService.list_for_student(db, uuid.uuid4(), student_id, now=now) == []


# ==============================
# Retried writes
# ==============================
def test_create_survives_a_dropped_connection(db, make_assessment, monkeypatch):
    calls = flaky_commit(db, monkeypatch)

    assessment = make_assessment([mc("Q1", 10), short("Explain", 5)])

    assert len(calls) == 2
    assert count(db, Assessment) == 1
    assert count(db, Question) == 2
    assert [q.question_text for q in assessment.questions] == ["Q1", "Explain"]


def test_update_survives_a_dropped_connection(db, make_assessment, teacher_id, monkeypatch):
    assessment = make_assessment([mc("Q1", 10)])
    calls = flaky_commit(db, monkeypatch)

    updated = AssessmentService.update(db, assessment.id, AssessmentUpdate(teacher_id=teacher_id, title="Renamed"))
    monkeypatch.undo()

    assert len(calls) == 2
    assert updated.title == "Renamed"
    db.expire_all()
    assert AssessmentService.get(db, assessment.id).title == "Renamed"


def test_update_that_never_commits_is_reported(db, make_assessment, teacher_id, monkeypatch):
    assessment = make_assessment([mc("Q1", 10)])
    flaky_commit(db, monkeypatch, failures=10)

    with pytest.raises(PersistenceError):
        AssessmentService.update(db, assessment.id, AssessmentUpdate(teacher_id=teacher_id, title="Renamed"))
    monkeypatch.undo()

    db.expire_all()
    assert AssessmentService.get(db, assessment.id).title == "Chapter 5 Quiz"


# ==============================
# Teacher list and delete
# ==============================
def test_teacher_list(db, make_assessment, school_id, teacher_id, student_id, now):
    first = make_assessment([mc("Q1", 10), short("Explain", 5)], title="Cells", subject="Biology")
    second = make_assessment([mc("Q1", 10)], title="Fractions", subject="Maths")
    AssessmentService.create(
        db, AssessmentCreate(**assessment_payload(school_id, uuid.uuid4(), [mc("Q1", 10)], title="Not mine"))
    )
    complete(db, first, student_id, now)
    complete(db, first, uuid.uuid4(), now)

    items = AssessmentService.list_for_teacher(db, teacher_id)

    assert [i.id for i in items] == [second.id, first.id]
    assert [i.submission_count for i in items] == [0, 2]
    assert items[1].question_count == 2
    assert items[1].total_points == 15


def test_teacher_list_search(db, make_assessment, teacher_id):
    make_assessment([mc("Q1", 10)], title="Cells", subject="Biology")
    make_assessment([mc("Q1", 10)], title="Fractions", subject="Maths")
    make_assessment([mc("Q1", 10)], title="Cell division")

    assert [i.title for i in AssessmentService.list_for_teacher(db, teacher_id, search="BIO")] == ["Cells"]
    assert sorted(i.title for i in AssessmentService.list_for_teacher(db, teacher_id, search="cell")) == [
        "Cell division",
        "Cells",
    ]
    assert len(AssessmentService.list_for_teacher(db, teacher_id, search="  ")) == 3


def test_delete_removes_submissions_and_responses(db, make_assessment, teacher_id, student_id, now):
    assessment = make_assessment([mc("Q1", 10), short("Explain", 5)])
    other = make_assessment([mc("Q1", 10)])
    result = complete(db, assessment, student_id, now)
    GradingService.grade_short_answer(db, result.submission_id, assessment.questions[1].id, 5, teacher_id)
    complete(db, other, student_id, now)

    AssessmentService.delete(db, assessment.id, teacher_id)

    with pytest.raises(NotFoundError):
        AssessmentService.get(db, assessment.id)
    assert count(db, Assessment) == 1
    assert count(db, Question) == 1
    assert count(db, Option) == 3
    assert count(db, Submission) == 1
    assert count(db, Response) == 1


def test_only_the_owner_deletes(db, make_assessment):
    assessment = make_assessment([mc("Q1", 10)])

    with pytest.raises(PermissionDeniedError):
        AssessmentService.delete(db, assessment.id, uuid.uuid4())

    assert count(db, Assessment) == 1


def test_due_today_follows_the_utc_day(db, make_assessment, school_id, student_id):
    # 20:00 in New York on March 2nd is already March 3rd in UTC
    new_york = timezone(timedelta(hours=-5))
    make_assessment([mc("Q1", 10)], title="Evening", due_date=datetime(2026, 3, 2, 20, 0, tzinfo=new_york))

    late_on_the_2nd = datetime(2026, 3, 2, 23, 30, tzinfo=timezone.utc)
    early_on_the_3rd = datetime(2026, 3, 3, 0, 30, tzinfo=timezone.utc)

    (item,) = AssessmentService.list_for_student(db, school_id, student_id, now=late_on_the_2nd)
    assert item.bucket == "upcoming"
    assert item.due_date == datetime(2026, 3, 3, 1, 0, tzinfo=timezone.utc)

    (item,) = AssessmentService.list_for_student(db, school_id, student_id, now=early_on_the_3rd)
    assert item.bucket == "due_soon"
