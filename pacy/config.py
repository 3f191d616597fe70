"""
Pacy Training Content Generator
Configuration classes for the Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not configured
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'pacy_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
    }

    # CORS: frontend origin(s), comma-separated
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", os.getenv("FRONTEND_URL", "*"))

    # Model providers (a provider is registered only when its key is set)
    ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
    LLM_USE_LOCAL_STUB = _env_bool("LLM_USE_LOCAL_STUB")
    LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "120"))
    LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "3"))
    LLM_RETRY_BASE_DELAY = float(os.getenv("LLM_RETRY_BASE_DELAY", "1.0"))

    # Agents & workflow
    AGENTS_DIR = os.getenv(
        "AGENTS_DIR", os.path.join(os.path.dirname(__file__), "ai", "agents"),
    )
    DEFAULT_PIPELINE = os.getenv("DEFAULT_PIPELINE", "optimized")
    BATCH_RETRY_DELAY_SECONDS = float(os.getenv("BATCH_RETRY_DELAY_SECONDS", "2.0"))
    CONVERSATION_TTL_SECONDS = int(os.getenv("CONVERSATION_TTL_SECONDS", str(6 * 3600)))

    # Uploads (metadata only; files are parsed elsewhere)
    UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(basedir, "uploads"))
    MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", "52428800"))  # 50 MB

    PORT = int(os.getenv("PORT", "3001"))


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
    # Flask-SQLAlchemy shares one connection (StaticPool) across threads for :memory:,
    # so streamed phases running on worker threads see the same tables
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    RATELIMIT_ENABLED = False
    # Never reach a real provider from the test suite
    ANTHROPIC_API_KEY = ""
    OPENAI_API_KEY = ""
    GEMINI_API_KEY = ""
    LLM_USE_LOCAL_STUB = True
    LLM_RETRY_BASE_DELAY = 0.0
    BATCH_RETRY_DELAY_SECONDS = 0.0
    CONVERSATION_TTL_SECONDS = 3600


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    # Railway/Heroku use postgres:// but SQLAlchemy 2.0 requires postgresql://
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", os.getenv("FRONTEND_URL", ""))

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
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
