import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


def _default_sqlite_uri() -> str:
    instance_path = BASE_DIR / "instance"
    instance_path.mkdir(exist_ok=True)
    return f"sqlite:///{instance_path / 'noveldraft.db'}"


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Base configuration shared across environments."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", _default_sqlite_uri())
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_TIME_LIMIT = None
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
    OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_TIMEOUT = float(os.environ.get("OPENAI_TIMEOUT", "120"))

    GENERATION_MAX_RETRIES = int(os.environ.get("GENERATION_MAX_RETRIES", "3"))
    GENERATION_RETRY_DELAY = float(os.environ.get("GENERATION_RETRY_DELAY", "1.0"))
    GENERATION_TEMPERATURE = float(os.environ.get("GENERATION_TEMPERATURE", "0.7"))
    COMPARISON_TEMPERATURE = float(os.environ.get("COMPARISON_TEMPERATURE", "0.4"))
    OUTLINE_MAX_TOKENS = int(os.environ.get("OUTLINE_MAX_TOKENS", "3000"))
    CHAPTER_MAX_TOKENS = int(os.environ.get("CHAPTER_MAX_TOKENS", "1500"))
    DUAL_DRAFT_CHAPTERS = _env_flag("DUAL_DRAFT_CHAPTERS")
    STALE_JOB_MINUTES = int(os.environ.get("STALE_JOB_MINUTES", "60"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    OPENAI_API_KEY = ""
    GENERATION_RETRY_DELAY = 0.0
    DUAL_DRAFT_CHAPTERS = False
