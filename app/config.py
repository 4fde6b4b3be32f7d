from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Storage
    DATABASE_URL: str = "postgresql://localhost:5432/followup"
    REDIS_URL: str = "redis://localhost:6379/0"
    HOLIDAY_CACHE_TTL_SECONDS: int = 6 * 3600

    # OpenAI settings (unanswered mention classifier)
    OPENAI_API_KEY: str | None = None
    OPENAI_UNANSWERED_MODEL: str = "gpt-4"
    OPENAI_UNANSWERED_PROMPT: str | None = None
    OPENAI_TIMEOUT_SECONDS: float = 30.0
    OPENAI_MAX_RETRIES: int = 3

    # Organization defaults
    TODO_PROJECT_NAME: str | None = None
    DEFAULT_TIMEZONE: str = "UTC"
    ATTENTION_MENTION_CLASSIFIER_ENABLED: bool = True

    # =================================================================
    # ATTENTION THRESHOLDS - business days
    # =================================================================
    ATTENTION_REVIEWER_UNASSIGNED_DAYS: int = 2
    ATTENTION_REVIEW_STALLED_DAYS: int = 2
    ATTENTION_MERGE_DELAYED_DAYS: int = 2
    ATTENTION_STUCK_REVIEW_REQUEST_DAYS: int = 5
    ATTENTION_BACKLOG_ISSUE_DAYS: int = 40
    ATTENTION_STALLED_IN_PROGRESS_DAYS: int = 20
    ATTENTION_UNANSWERED_MENTION_DAYS: int = 5

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 3
    DB_POOL_MAX_SIZE: int = 12
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def todo_project_name(self) -> str | None:
        """Normalized target project title used to match project-board entries."""
        if not self.TODO_PROJECT_NAME:
            return None
        normalized = self.TODO_PROJECT_NAME.strip().lower()
        return normalized or None

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            # The detectors run concurrently, keep enough headroom for all of them
            config.update({"min_size": 2, "max_size": 8, "timeout": 15.0})

        return config


settings = Settings()
