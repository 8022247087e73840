"""
DJT Quest Platform
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'djt_quest_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _csv_env(name: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,   # recycle connections every 5 min
    }

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Rate limiter storage (Redis in production, memory for dev)
    RATELIMIT_STORAGE_URI = os.getenv("REDIS_URL", "memory://")

    # JWT (tokens are issued by the identity provider; we only verify)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ACCESS_EXPIRES = int(os.getenv("JWT_ACCESS_EXPIRES", "900"))

    # ── Role hierarchy (highest privilege first) ─────────────────────────
    ROLE_HIERARCHY = _csv_env(
        "ROLE_HIERARCHY",
        "admin,gerente_djt,gerente_divisao_djtx,coordenador_djtx,lider_equipe,colaborador,invited",
    )
    PRIVILEGED_ROLES = _csv_env(
        "PRIVILEGED_ROLES",
        "admin,gerente_djt,gerente_divisao_djtx,coordenador_djtx,lider_equipe",
    )
    DEFAULT_ROLE = os.getenv("DEFAULT_ROLE", "colaborador")

    # Roles whose holders may be picked as peer evaluators
    EVALUATOR_ROLES = _csv_env(
        "EVALUATOR_ROLES",
        "gerente_djt,gerente_divisao_djtx,coordenador_djtx,lider_equipe",
    )

    # Organizational tags for users with no home unit
    GUEST_AREA_TAGS = _csv_env("GUEST_AREA_TAGS", "CONVIDADOS,EXTERNO")
    # Team that approved guests are placed under, outside the hierarchy
    GUEST_TEAM_ID = os.getenv("GUEST_TEAM_ID", "CONVIDADOS")

    # Render out-of-scope single-record denials exactly like "not found"
    SCOPE_DENIAL_AS_NOT_FOUND = os.getenv("SCOPE_DENIAL_AS_NOT_FOUND", "false").lower() == "true"

    PENDING_REGISTRATION_LIMIT = int(os.getenv("PENDING_REGISTRATION_LIMIT", "500"))


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = (
        _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else _SQLITE_DEV
    )


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length-for-hs256"
    RATELIMIT_ENABLED = False
    SCOPE_DENIAL_AS_NOT_FOUND = False


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    # Railway/Heroku use postgres:// but SQLAlchemy 2.0 requires postgresql://
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production
    SCOPE_DENIAL_AS_NOT_FOUND = os.getenv("SCOPE_DENIAL_AS_NOT_FOUND", "true").lower() == "true"

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {
            "options": "-c statement_timeout=30000",  # 30s query timeout
        },
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
