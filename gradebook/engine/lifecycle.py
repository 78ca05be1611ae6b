# gradebook/engine/lifecycle.py

"""
Submission lifecycle as a tagged variant.

    NotStarted -> InProgress -> Completed -> Graded

Only NotStarted/InProgress -> Completed is triggered by a student (submit);
Completed -> Graded is triggered by a teacher saving a review. Nothing goes
back to InProgress: a student with a completed submission is sent to the
results instead.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Union


@dataclass(frozen=True)
class NotStarted:
    status = "not_started"


@dataclass(frozen=True)
class InProgress:
    started_at: Optional[datetime]
    status = "in_progress"


@dataclass(frozen=True)
class Completed:
    submitted_at: datetime
    score: int
    status = "completed"


@dataclass(frozen=True)
class Graded:
    submitted_at: datetime
    score: int
    feedback: Optional[str]
    status = "graded"


SubmissionState = Union[NotStarted, InProgress, Completed, Graded]


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (SQLite hands those back) as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def derive_state(submission: Any, pending_manual: int = 0) -> SubmissionState:
    """
    Derive the lifecycle state of a stored submission.

    Args:
        submission: Submission row or None when the student never submitted
        pending_manual: Number of short answer responses still without points

    A completed submission is Graded once a teacher has saved a review and
    no short answer is left ungraded.
    """
    if submission is None:
        return NotStarted()

    if not submission.completed:
        return InProgress(started_at=as_utc(submission.started_at))

    submitted_at = as_utc(submission.submitted_at)
    score = submission.score or 0

    if submission.graded_at is not None and pending_manual == 0:
        return Graded(submitted_at=submitted_at, score=score, feedback=submission.feedback)
    return Completed(submitted_at=submitted_at, score=score)


def elapsed_seconds(started_at: datetime, now: datetime) -> int:
    """Whole seconds between start and submit, never negative."""
    delta = as_utc(now) - as_utc(started_at)
    return max(0, int(delta.total_seconds()))
