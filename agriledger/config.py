# agriledger/config.py
from __future__ import annotations
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite file in the instance folder by default; point DATABASE_URL at
    # Postgres in production so row locks are honored.
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///agriledger.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Optimistic-concurrency retry policy for ledger commands
    LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "3"))
    LEDGER_RETRY_BACKOFF = float(os.environ.get("LEDGER_RETRY_BACKOFF", "0.1"))

    # Change-event delivery pool
    EVENT_WORKERS = int(os.environ.get("EVENT_WORKERS", "4"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
