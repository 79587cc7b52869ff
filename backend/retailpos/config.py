# backend/retailpos/config.py
from __future__ import annotations
import os


DEFAULT_JWT_SECRET = "dev-jwt-secret-change-me"


def _split_origins(value: str | None) -> set[str]:
    if not value:
        return {"http://localhost:5173", "http://127.0.0.1:5173"}
    return {origin.strip() for origin in value.split(",") if origin.strip()}


class Config:
    APP_ENV = os.environ.get("APP_ENV", "development")

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/retailpos.sqlite3 by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///retailpos.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds a SQLite writer waits on the database lock before giving up
    SQLITE_BUSY_TIMEOUT = float(os.environ.get("SQLITE_BUSY_TIMEOUT", "5"))

    # Signed credentials
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", DEFAULT_JWT_SECRET)
    JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
    JWT_EXPIRES_IN_SECONDS = int(os.environ.get("JWT_EXPIRES_IN_SECONDS", str(7 * 24 * 3600)))

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Login lockout per email, registration limit per client address
    LOGIN_MAX_FAILED_ATTEMPTS = int(os.environ.get("LOGIN_MAX_FAILED_ATTEMPTS", "5"))
    LOGIN_LOCKOUT_MINUTES = int(os.environ.get("LOGIN_LOCKOUT_MINUTES", "15"))
    REGISTER_MAX_ATTEMPTS = int(os.environ.get("REGISTER_MAX_ATTEMPTS", "3"))
    REGISTER_WINDOW_MINUTES = int(os.environ.get("REGISTER_WINDOW_MINUTES", "60"))

    # Atomic commit tuning
    COMMIT_RETRY_ATTEMPTS = int(os.environ.get("COMMIT_RETRY_ATTEMPTS", "3"))
    TRANSACTION_NUMBER_ATTEMPTS = int(os.environ.get("TRANSACTION_NUMBER_ATTEMPTS", "3"))

    CORS_ORIGINS = _split_origins(os.environ.get("CORS_ORIGINS"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
