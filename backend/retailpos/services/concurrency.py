# Overview: Service-layer helpers for concurrent writers; retry and write-lock acquisition.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def begin_write_unit() -> None:
    """
    Open the database transaction for an atomic write.

    SQLite: take the write lock up front (BEGIN IMMEDIATE) so competing
    writers queue on the busy timeout instead of failing mid-unit.
    Other databases rely on row locks taken by the conditional UPDATEs.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError.
    func must leave no state behind when it raises: the session is rolled
    back before every retry.
    """
    if attempts is None:
        attempts = current_app.config.get("COMMIT_RETRY_ATTEMPTS", 3)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.info("Retrying write after lock conflict (attempt %s)", attempt + 1)
            time.sleep(backoff_base * (2 ** attempt))
