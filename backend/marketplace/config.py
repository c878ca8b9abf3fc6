from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/marketplace.db"
    secret_key: str = "dev-secret-key-change-in-production"
    log_level: str = "INFO"

    # Redis configuration
    redis_url: str = "redis://localhost:6379"

    # Celery configuration
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/0"

    # Cache settings
    cache_ttl_seconds: int = 3600
    cache_timeout_seconds: float = 0.5  # Reads fall back to the database past this

    # Notification delivery
    notification_timeout_seconds: float = 2.0
    mail_api_url: str = ""
    mail_api_key: str = ""
    mail_from_address: str = "no-reply@ambassador-marketplace.local"

    # Stale application sweep
    application_expiry_days: int = 30
    expiry_sweep_hour: int = 0  # UTC hour of the daily sweep

    # Interview reminders, sent by an hourly sweep
    interview_reminder_hours: int = 24

    # SQLite busy timeout for queued writers
    database_busy_timeout_seconds: float = 30.0

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
