"""
Domain errors raised by the gradebook services.

Every error carries the HTTP status the routers translate it into.
None of them is fatal: at worst one attempt or grading action is retried.
"""

from typing import Iterable, Optional
from uuid import UUID


class GradebookError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(GradebookError):
    status_code = 404


class PermissionDeniedError(GradebookError):
    status_code = 403


class StoreUnavailableError(GradebookError):
    """The store could not be reached within the retry budget."""

    status_code = 503


class PersistenceError(GradebookError):
    """A write failed; nothing from the action was stored."""

    status_code = 503


class IncompleteAttemptError(GradebookError):
    status_code = 422

    def __init__(self, unanswered: Iterable[UUID]):
        self.unanswered = list(unanswered)
        super().__init__(
            f"Please answer all questions before submitting ({len(self.unanswered)} unanswered)"
        )


class AlreadySubmittedError(GradebookError):
    status_code = 409

    def __init__(self, submission_id: Optional[UUID]):
        self.submission_id = submission_id
        super().__init__("Assessment already submitted")


class SubmissionNotCompletedError(GradebookError):
    status_code = 409


class AssessmentLockedError(GradebookError):
    status_code = 409


class InvalidGradeTargetError(GradebookError):
    status_code = 400
