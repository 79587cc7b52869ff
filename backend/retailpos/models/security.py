from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow


class AttemptKind:
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    REGISTER = "REGISTER"


class AuthAttempt(db.Model):
    """
    Append-only log of login and registration attempts, read by the throttle.

    identifier is the normalized email for logins and the client address for
    registrations. Rows are written before any tenant exists, so they carry
    no owner_id.
    """
    __tablename__ = "auth_attempts"
    __table_args__ = (
        db.Index("ix_auth_attempts_kind_identifier_at", "kind", "identifier", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(32), nullable=False)
    identifier = db.Column(db.String(255), nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<AuthAttempt id={self.id} kind={self.kind} identifier={self.identifier!r}>"
