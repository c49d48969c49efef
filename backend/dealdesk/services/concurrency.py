# Overview: Retry helper for transient backend failures (session checks, login).

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError

from ..extensions import db


def run_with_retry(
    func,
    *,
    attempts: int = 3,
    delay: float = 0.1,
    backoff: bool = True,
    retry_on: tuple[type[BaseException], ...] = (OperationalError,),
):
    """
    Execute an operation, retrying on transient failures.

    The wait starts at ``delay`` seconds and doubles after every failed
    attempt when ``backoff`` is set. After ``attempts`` failures the last
    exception propagates to the caller.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    wait = delay
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Operation failed (%s), retrying in %.2fs (%d retries left)",
                exc.__class__.__name__, wait, attempts - attempt - 1,
            )
            if wait > 0:
                time.sleep(wait)
            if backoff:
                wait *= 2


def run_session_check(func):
    """Retry policy for authentication/session calls, taken from app config."""
    return run_with_retry(
        func,
        attempts=current_app.config.get("SESSION_RETRY_ATTEMPTS", 5),
        delay=current_app.config.get("SESSION_RETRY_DELAY", 1.0),
        backoff=True,
    )
