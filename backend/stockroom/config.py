# backend/stockroom/config.py
from __future__ import annotations
import os


def _split(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockroom.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockroom.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session tokens are issued by the hosted auth provider; we only verify them.
    # For RS256 providers AUTH_JWT_KEY holds the PEM public key.
    AUTH_JWT_KEY = os.environ.get("AUTH_JWT_KEY", "dev-jwt-key-change-me").replace("\\n", "\n")
    AUTH_JWT_ALGORITHMS = _split(os.environ.get("AUTH_JWT_ALGORITHMS", "HS256"))
    AUTH_JWT_ISSUER = os.environ.get("AUTH_JWT_ISSUER") or None
    AUTH_JWT_AUDIENCE = os.environ.get("AUTH_JWT_AUDIENCE") or None
    AUTH_JWT_LEEWAY = int(os.environ.get("AUTH_JWT_LEEWAY", "10"))

    # Hosted object storage for product photos
    STORAGE_URL = os.environ.get("STORAGE_URL", "http://127.0.0.1:54321/storage/v1")
    STORAGE_API_KEY = os.environ.get("STORAGE_API_KEY", "")
    STORAGE_BUCKET = os.environ.get("STORAGE_BUCKET", "product-images")
    STORAGE_TIMEOUT = float(os.environ.get("STORAGE_TIMEOUT", "10"))

    CORS_ALLOWED_ORIGINS = _split(os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    ))

    # Base URL of the dashboard; client quote links point at <APP_URL>/quote/<token>
    APP_URL = os.environ.get("APP_URL", "http://localhost:3000")

    # Shown to clients on the public quote page. Organizations live with the
    # auth provider, so the profile is configured here.
    QUOTE_ORGANIZATION = {
        "name": os.environ.get("QUOTE_ORG_NAME", "Organization"),
        "email": os.environ.get("QUOTE_ORG_EMAIL") or None,
        "phone": os.environ.get("QUOTE_ORG_PHONE") or None,
        "address": os.environ.get("QUOTE_ORG_ADDRESS") or None,
    }

    # Template import steps run per request (start, then each progress poll)
    TEMPLATE_IMPORT_CHUNK_SIZE = int(os.environ.get("TEMPLATE_IMPORT_CHUNK_SIZE", "50"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    AUTH_JWT_KEY = "test-jwt-key-with-enough-length-for-hs256"
    AUTH_JWT_ALGORITHMS = ["HS256"]
    AUTH_JWT_ISSUER = None
    AUTH_JWT_AUDIENCE = None
    STORAGE_URL = "https://storage.test/storage/v1"
    STORAGE_API_KEY = "test-storage-key"
    APP_URL = "https://app.test"
    QUOTE_ORGANIZATION = {"name": "Alpha Supplies", "email": "sales@alpha.test", "phone": None, "address": None}
    TEMPLATE_IMPORT_CHUNK_SIZE = 50
