"""
Pydantic Settings — centralized configuration loaded from environment variables.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database ──────────────────────────────
    POSTGRES_USER: str = "usfm_export_user"
    POSTGRES_PASSWORD: str = "usfm_export_pass"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "fluent_db"

    # Full async URL, e.g. "sqlite+aiosqlite:///./exports.db" for local runs
    DATABASE_URL_OVERRIDE: str = ""

    @property
    def DATABASE_URL(self) -> str:
        """Async URL for app runtime (asyncpg)."""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # ── Database retry ────────────────────────
    DB_RETRY_MAX_ATTEMPTS: int = 3
    DB_RETRY_BASE_DELAY: float = 1.0
    DB_RETRY_MAX_DELAY: float = 5.0
    DB_RETRY_BACKOFF_FACTOR: float = 2.0

    # ── Redis / Celery ────────────────────────
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"
    EXPORT_QUEUE_NAME: str = "exports"
    EXPORT_TASK_MAX_RETRIES: int = 3
    EXPORT_TASK_RETRY_BACKOFF_MAX: int = 600

    # ── USFM export ───────────────────────────
    USFM_ZIP_COMPRESSION_LEVEL: int = 9
    USFM_VERSE_BATCH_SIZE: int = 25

    # ── Application ───────────────────────────
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    API_PREFIX: str = "/api/v1"

    model_config = {"env_file": ["../.env", ".env"], "extra": "ignore"}


settings = Settings()
