import os

# must be set before gradebook.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORE_BACKOFF_SECONDS"] = "0"
os.environ["STORE_RETRY_ATTEMPTS"] = "2"

import uuid  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import gradebook.models  # noqa: E402,F401
from gradebook.db.base import Base  # noqa: E402
from gradebook.db.session import SessionLocal, engine  # noqa: E402
from gradebook.main import app  # noqa: E402
from gradebook.schemas.assessment import AssessmentCreate  # noqa: E402
from gradebook.services.assessments import AssessmentService  # noqa: E402
from gradebook.tests.helpers import assessment_payload  # noqa: E402


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def school_id():
    return uuid.uuid4()


@pytest.fixture
def teacher_id():
    return uuid.uuid4()


@pytest.fixture
def student_id():
    return uuid.uuid4()


@pytest.fixture
def now():
    return datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_assessment(db, school_id, teacher_id):
    def _make(questions, max_score=100, **extra):
        payload = AssessmentCreate(
            **assessment_payload(school_id, teacher_id, questions, max_score, **extra)
        )
        return AssessmentService.create(db, payload)

    return _make


@pytest.fixture
def started(now):
    return now - timedelta(minutes=12)
