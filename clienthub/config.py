"""
Configuration classes, selected by ``APP_ENV`` (development | testing | production).

Values come from the environment; see each block for the variables read.
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def _env_bool(name, default):
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def _database_url(default=None):
    # Hosted Postgres URLs still use the postgres:// scheme SQLAlchemy 2 rejects
    raw = os.getenv("DATABASE_URL", "")
    return raw.replace("postgres://", "postgresql://", 1) if raw else default


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", secrets.token_hex(32))
    DEBUG = False
    TESTING = False

    # ── Identity provider tokens (HS256) ─────────────────────────────────
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")          # falls back to SECRET_KEY
    JWT_ISSUER = os.getenv("JWT_ISSUER")                  # checked when set
    JWT_AUDIENCE = os.getenv("JWT_AUDIENCE")              # checked when set
    JWT_LEEWAY = int(os.getenv("JWT_LEEWAY", "30"))       # seconds of clock skew
    JWT_ACCESS_EXPIRES = int(os.getenv("JWT_ACCESS_EXPIRES", "3600"))

    # ── Database ─────────────────────────────────────────────────────────
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_recycle": 300}
    AUTO_CREATE_TABLES = _env_bool("AUTO_CREATE_TABLES", True)

    # ── HTTP surface ─────────────────────────────────────────────────────
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    MAX_CONTENT_LENGTH = 2 * 1024 * 1024
    RATELIMIT_STORAGE_URI = os.getenv("REDIS_URL", "memory://")
    RATE_LIMITS = {
        "webhooks": os.getenv("RATE_LIMIT_WEBHOOKS", "30/minute"),
        "write": os.getenv("RATE_LIMIT_WRITE", "60/minute"),
        "read": os.getenv("RATE_LIMIT_READ", "200/minute"),
    }

    # ── Logging ──────────────────────────────────────────────────────────
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "json")
    SLOW_REQUEST_MS = int(os.getenv("SLOW_REQUEST_MS", "1000"))

    # ── Outbound e-mail (unset MAIL_SERVER → record-only) ────────────────
    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:5000")
    MAIL_SERVER = os.getenv("MAIL_SERVER")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "ClientHub <noreply@clienthub.local>")
    MAIL_REPLY_TO = os.getenv("MAIL_REPLY_TO")

    # ── Contract provisioning (PandaDoc) ─────────────────────────────────
    PANDADOC_API_KEY = os.getenv("PANDADOC_API_KEY")
    PANDADOC_WEBHOOK_SECRET = os.getenv("PANDADOC_WEBHOOK_SECRET")
    PANDADOC_API_BASE = os.getenv("PANDADOC_API_BASE", "https://api.pandadoc.com/public/v1")
    PANDADOC_TIMEOUT = int(os.getenv("PANDADOC_TIMEOUT", "15"))
    DEFAULT_TEMPLATE_NAME = os.getenv("DEFAULT_TEMPLATE_NAME", "standard-client-portal")


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "text")
    SQLALCHEMY_DATABASE_URI = _database_url(
        f"sqlite:///{os.path.join(basedir, 'instance', 'clienthub_dev.db')}"
    )


class TestingConfig(Config):
    TESTING = True
    LOG_LEVEL = "WARNING"
    LOG_FORMAT = "text"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "test-jwt-secret"
    JWT_ISSUER = None
    JWT_AUDIENCE = None
    PANDADOC_API_KEY = "test-pandadoc-key"
    PANDADOC_WEBHOOK_SECRET = "test-webhook-secret"
    MAIL_SERVER = None
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    AUTO_CREATE_TABLES = _env_bool("AUTO_CREATE_TABLES", False)
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {"options": "-c statement_timeout=30000"},
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        # The class default is regenerated per process
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
