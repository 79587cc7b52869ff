"""
Login Throttling Service

WHY: Public endpoints are the only way in without a credential. Repeated
password guesses against one email lock that email for a while, and one
client address can only register a few tenants per window.

RULES:
- Failed logins are counted per normalized email within LOGIN_LOCKOUT_MINUTES
- A successful login restarts the count
- Reaching LOGIN_MAX_FAILED_ATTEMPTS locks the email until the most recent
  failure is LOGIN_LOCKOUT_MINUTES old
- Every registration attempt counts against the client address, successful
  or not, up to REGISTER_MAX_ATTEMPTS per REGISTER_WINDOW_MINUTES
- Locked logins and throttled registrations raise TooManyAttempts (429)
"""

from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy import func

from ..errors import TooManyAttempts
from ..extensions import db
from ..models import AttemptKind, AuthAttempt
from ..time_utils import utcnow


def normalize_identifier(email) -> str:
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def _lockout_window() -> timedelta:
    return timedelta(minutes=current_app.config.get("LOGIN_LOCKOUT_MINUTES", 15))


def _max_failures() -> int:
    return current_app.config.get("LOGIN_MAX_FAILED_ATTEMPTS", 5)


def _latest(kind: str, identifier: str):
    return (
        db.session.query(func.max(AuthAttempt.occurred_at))
        .filter(AuthAttempt.kind == kind, AuthAttempt.identifier == identifier)
        .scalar()
    )


def get_recent_failed_attempts(identifier: str) -> int:
    """Failures inside the lockout window and after the last successful login."""
    cutoff = utcnow() - _lockout_window()
    last_success = _latest(AttemptKind.LOGIN_SUCCESS, identifier)
    if last_success is not None and last_success > cutoff:
        cutoff = last_success

    return (
        db.session.query(func.count(AuthAttempt.id))
        .filter(
            AuthAttempt.kind == AttemptKind.LOGIN_FAILED,
            AuthAttempt.identifier == identifier,
            AuthAttempt.occurred_at > cutoff,
        )
        .scalar()
    )


def seconds_until_unlock(identifier: str) -> int | None:
    """
    Returns:
    - seconds remaining if the email is locked
    - None otherwise
    """
    if get_recent_failed_attempts(identifier) < _max_failures():
        return None

    most_recent = _latest(AttemptKind.LOGIN_FAILED, identifier)
    if most_recent is None:
        return None

    remaining = (most_recent + _lockout_window() - utcnow()).total_seconds()
    if remaining <= 0:
        return None
    return max(1, int(remaining))


def _locked(seconds: int, message: str) -> TooManyAttempts:
    return TooManyAttempts(
        message,
        details={"retry_after_seconds": seconds, "retry_after_minutes": seconds // 60 + 1},
    )


def check_login_allowed(identifier: str) -> None:
    seconds = seconds_until_unlock(identifier)
    if seconds is not None:
        raise _locked(seconds, "Account temporarily locked due to too many failed login attempts")


def _record(kind: str, identifier: str, *, user_id=None, ip_address=None, user_agent=None) -> None:
    db.session.add(AuthAttempt(
        kind=kind,
        identifier=identifier[:255],
        user_id=user_id,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
        occurred_at=utcnow(),
    ))
    db.session.commit()


def record_failed_login(identifier: str, *, ip_address=None, user_agent=None) -> int:
    """Record a failure and return how many attempts remain before lockout."""
    _record(AttemptKind.LOGIN_FAILED, identifier, ip_address=ip_address, user_agent=user_agent)
    remaining = _max_failures() - get_recent_failed_attempts(identifier)
    if remaining <= 0:
        current_app.logger.warning("Login locked after repeated failures: email=%s ip=%s", identifier, ip_address)
    return remaining


def record_successful_login(user_id: int, identifier: str, *, ip_address=None, user_agent=None) -> None:
    _record(
        AttemptKind.LOGIN_SUCCESS, identifier,
        user_id=user_id, ip_address=ip_address, user_agent=user_agent,
    )


def check_registration_allowed(ip_address: str | None) -> None:
    """Raise TooManyAttempts once the address has used up its registration window."""
    identifier = ip_address or "unknown"
    window = timedelta(minutes=current_app.config.get("REGISTER_WINDOW_MINUTES", 60))
    limit = current_app.config.get("REGISTER_MAX_ATTEMPTS", 3)
    cutoff = utcnow() - window

    recent = (
        db.session.query(AuthAttempt.occurred_at)
        .filter(
            AuthAttempt.kind == AttemptKind.REGISTER,
            AuthAttempt.identifier == identifier,
            AuthAttempt.occurred_at > cutoff,
        )
        .order_by(AuthAttempt.occurred_at)
        .all()
    )
    if len(recent) < limit:
        return

    # The window frees up when the oldest counted attempt ages out
    oldest = recent[0][0]
    seconds = max(1, int((oldest + window - utcnow()).total_seconds()))
    current_app.logger.warning("Registration throttled: ip=%s", identifier)
    raise _locked(seconds, "Too many registration attempts, please try again later")


def record_registration_attempt(ip_address: str | None, *, user_agent=None) -> None:
    _record(AttemptKind.REGISTER, ip_address or "unknown", ip_address=ip_address, user_agent=user_agent)
