# backend/stockbook/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockbook.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockbook.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Flat tax rate applied when a sale carries neither tax_rate nor tax_amount
    DEFAULT_TAX_RATE = os.environ.get("DEFAULT_TAX_RATE", "0.18")

    # Invoice numbering: fiscal year starts in April, sequence padded to 2 digits
    FISCAL_YEAR_START_MONTH = int(os.environ.get("FISCAL_YEAR_START_MONTH", "4"))
    INVOICE_SEQUENCE_MIN_DIGITS = int(os.environ.get("INVOICE_SEQUENCE_MIN_DIGITS", "2"))
    NUMBERING_MAX_ATTEMPTS = int(os.environ.get("NUMBERING_MAX_ATTEMPTS", "3"))

    # Whole-transaction retries on lock/deadlock errors
    SALE_RETRY_ATTEMPTS = int(os.environ.get("SALE_RETRY_ATTEMPTS", "3"))

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Printed invoice header
    COMPANY_NAME = os.environ.get("COMPANY_NAME", "Stockbook Trading")
    COMPANY_ADDRESS = os.environ.get("COMPANY_ADDRESS", "")
    COMPANY_PHONE = os.environ.get("COMPANY_PHONE", "")
