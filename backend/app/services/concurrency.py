# Overview: Retry helper for batch database work run outside the request/flush cycle.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

# Lock timeouts / deadlocks, and version_id conflicts on orders
RETRYABLE_ERRORS = (OperationalError, StaleDataError)

logger = logging.getLogger(__name__)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, session=None):
    """
    Run func() and retry it on concurrency failures with exponential backoff.

    func must do ALL of its work (reads, derived writes and the commit):
    the session is rolled back before every retry, discarding anything a
    failed attempt left behind. The last failure is re-raised.
    """
    session = session if session is not None else db.session
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            session.rollback()
            if attempt >= attempts:
                raise
            logger.warning(
                "Retrying after %s (attempt %s of %s)",
                type(exc).__name__,
                attempt,
                attempts,
                extra={"operation": getattr(func, "__name__", "batch"), "attempt": attempt},
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
