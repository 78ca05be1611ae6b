import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from gradebook.core.config import settings
from gradebook.core.errors import StoreUnavailableError
from gradebook.db.retry import is_transient, run_with_retry


class FakeSession:
    def __init__(self):
        self.rollbacks = 0

    def rollback(self):
        self.rollbacks += 1


class Flaky:
    def __init__(self, failures, exc=None):
        self.failures = failures
        self.calls = 0
        self.exc = exc or OperationalError("SELECT 1", {}, Exception("connection reset"))

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return "ok"


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    monkeypatch.setattr(settings, "STORE_RETRY_ATTEMPTS", 3)
    monkeypatch.setattr(settings, "STORE_BACKOFF_SECONDS", 0)
    monkeypatch.setattr(settings, "STORE_TIMEOUT_SECONDS", 5.0)


def test_transient_failure_is_retried():
    db = FakeSession()
    operation = Flaky(failures=2)

    assert run_with_retry(db, operation, "load assessment") == "ok"
    assert operation.calls == 3
    assert db.rollbacks == 2


def test_exhausted_retries_report_store_unavailable():
    db = FakeSession()
    operation = Flaky(failures=10)

    with pytest.raises(StoreUnavailableError) as exc_info:
        run_with_retry(db, operation, "load assessment")

    assert operation.calls == 3
    assert exc_info.value.status_code == 503
    assert "load assessment" in exc_info.value.message


def test_time_budget_stops_retries(monkeypatch):
    monkeypatch.setattr(settings, "STORE_RETRY_ATTEMPTS", 100)
    monkeypatch.setattr(settings, "STORE_TIMEOUT_SECONDS", 0)
    operation = Flaky(failures=10)

    with pytest.raises(StoreUnavailableError):
        run_with_retry(FakeSession(), operation, "load assessment")

    assert operation.calls == 1


def test_integrity_errors_are_not_retried():
    db = FakeSession()
    operation = Flaky(failures=1, exc=IntegrityError("INSERT", {}, Exception("duplicate key")))

    with pytest.raises(IntegrityError):
        run_with_retry(db, operation, "submit assessment")

    assert operation.calls == 1
    assert db.rollbacks == 1


def test_other_errors_propagate_untouched():
    db = FakeSession()

    def broken():
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        run_with_retry(db, broken, "save grade")

    assert db.rollbacks == 0


def test_transient_classification():
    assert is_transient(OperationalError("SELECT 1", {}, Exception()))
    assert is_transient(DBAPIError("SELECT 1", {}, Exception(), connection_invalidated=True))
    assert not is_transient(DBAPIError("SELECT 1", {}, Exception()))
    assert not is_transient(ValueError())
