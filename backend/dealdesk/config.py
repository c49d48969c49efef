# backend/dealdesk/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/dealdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///dealdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Object storage: "local" writes under STORAGE_ROOT/<bucket>/, "s3" uses boto3
    STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "local")
    STORAGE_ROOT = os.environ.get("STORAGE_ROOT", "storage")
    STORAGE_S3_REGION = os.environ.get("STORAGE_S3_REGION")
    STORAGE_BUCKET_PREFIX = os.environ.get("STORAGE_BUCKET_PREFIX", "")

    # Per-file upload ceilings (bytes)
    UPLOAD_MAX_BYTES = int(os.environ.get("UPLOAD_MAX_BYTES", 10 * 1024 * 1024))
    # Partner and opportunity documents (proposals, spreadsheets) get the larger one
    LARGE_UPLOAD_MAX_BYTES = int(os.environ.get("LARGE_UPLOAD_MAX_BYTES", 20 * 1024 * 1024))

    # Password assigned to users created from a spreadsheet import
    IMPORT_DEFAULT_PASSWORD = os.environ.get("IMPORT_DEFAULT_PASSWORD", "Welcome123!")

    # bcrypt cost factor for password hashes
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", 12))

    # Session checks retry with doubling delay
    SESSION_RETRY_ATTEMPTS = int(os.environ.get("SESSION_RETRY_ATTEMPTS", 5))
    SESSION_RETRY_DELAY = float(os.environ.get("SESSION_RETRY_DELAY", 1.0))

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    }
