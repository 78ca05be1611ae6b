# gradebook/db/retry.py

"""
Retry-with-backoff and a hard time budget around store calls.

Transient failures (dropped connections, timeouts, a database that is
restarting) surface from SQLAlchemy as OperationalError or as a DBAPIError
flagged connection_invalidated. Those are retried with exponential backoff;
the session is rolled back between tries so the next try starts clean.
Once the attempt count or the time budget runs out the failure is reported
as StoreUnavailableError instead of hanging the request.
"""

import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session
from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)

from gradebook.core.config import settings
from gradebook.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


def run_with_retry(db: Session, operation: Callable[[], T], description: str) -> T:
    """
    Run `operation` against the store under the retry policy.

    Args:
        db: Session the operation uses; rolled back after each failed try
        operation: Zero-argument callable doing the reads/writes
        description: Human readable name used in logs and errors

    Returns:
        Whatever `operation` returns.

    Raises:
        StoreUnavailableError: transient failures outlasted the budget
    """
    retrying = Retrying(
        stop=(
            stop_after_attempt(max(1, settings.STORE_RETRY_ATTEMPTS))
            | stop_after_delay(settings.STORE_TIMEOUT_SECONDS)
        ),
        wait=wait_exponential(multiplier=settings.STORE_BACKOFF_SECONDS, max=2),
        retry=retry_if_exception(is_transient),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=False,
    )

    try:
        for attempt in retrying:
            with attempt:
                try:
                    return operation()
                except DBAPIError:
                    db.rollback()
                    raise
    except RetryError as exc:
        cause = exc.last_attempt.exception()
        logger.error("Store unavailable while trying to %s: %s", description, cause)
        raise StoreUnavailableError(f"Could not {description}, please retry") from cause

    raise StoreUnavailableError(f"Could not {description}, please retry")
