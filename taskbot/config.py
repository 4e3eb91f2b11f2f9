"""
Configuration management for TaskBot
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "TaskBot"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./taskbot.db"

    # Cache (empty = in-process cache)
    REDIS_URL: str = ""
    MESSAGE_DEDUP_TTL_SECONDS: int = 60 * 10
    SESSION_TTL_SECONDS: int = 60 * 60  # 1 hour
    TASK_PROGRESS_CACHE_TTL_SECONDS: int = 60 * 60 * 24  # 24 hours

    # Conversation memory for the intent classifier
    CHAT_HISTORY_LIMIT: int = 3
    CHAT_HISTORY_TTL_SECONDS: int = 600  # 10 minutes

    # Claude API (intent classifier)
    ANTHROPIC_API_KEY: str = ""
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"
    CLAUDE_MAX_TOKENS: int = 500
    CLASSIFIER_TIMEOUT_SECONDS: float = 30.0

    # WhatsApp gateway
    WHATSAPP_API_URL: str = "http://localhost:3000"
    WHATSAPP_USERNAME: str = ""
    WHATSAPP_PASSWORD: str = ""
    WHATSAPP_PATH: str = ""
    WHATSAPP_WEBHOOK_SECRET: str = ""
    WHATSAPP_TIMEOUT_SECONDS: float = 30.0

    # Reminders
    REMINDER_SWEEP_INTERVAL_MIN: int = 5

    # Default financial rates (seeded when missing)
    DEFAULT_TAX_RATE: float = 10.0
    DEFAULT_MARKETING_RATE: float = 5.0
    DEFAULT_RENTAL_RATE: float = 3.0

    # Default super admin (seeded when missing)
    DEFAULT_ADMIN_USERNAME: str = "admin"
    DEFAULT_ADMIN_EMAIL: str = "admin@taskbot.local"
    DEFAULT_ADMIN_WHATSAPP: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
