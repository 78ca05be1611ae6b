from fastapi import HTTPException

from gradebook.core.errors import (
    AlreadySubmittedError,
    GradebookError,
    IncompleteAttemptError,
)


def http_error(exc: GradebookError) -> HTTPException:
    """Translate a service error into the HTTP error the client sees."""
    if isinstance(exc, AlreadySubmittedError):
        detail = {
            "message": exc.message,
            "submission_id": str(exc.submission_id) if exc.submission_id else None,
        }
    elif isinstance(exc, IncompleteAttemptError):
        detail = {
            "message": exc.message,
            "unanswered": [str(qid) for qid in exc.unanswered],
        }
    else:
        detail = exc.message
    return HTTPException(status_code=exc.status_code, detail=detail)
