"""
Application settings loaded from environment variables.

Uses pydantic-settings for type-safe configuration with .env file support.
"""

from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Global application settings."""

    # App
    APP_NAME: str = "P2P Queue Engine"
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Storage
    STORE_BACKEND: str = "memory"  # "memory" or "sql"
    DATABASE_URL: str = "sqlite+aiosqlite:///./p2p_queue.db"
    DATABASE_POOL_SIZE: int = 20

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # Matching Engine
    MATCH_MAX_RETRIES: int = 3
    MATCH_SWEEP_INTERVAL_SECONDS: int = 300
    MATCH_MIN_SCORE: float = 0.0
    SCORE_PAYMENT_TYPE: int = 20
    SCORE_AMOUNT_CLOSE: int = 30         # |diff| < AMOUNT_CLOSE_THRESHOLD
    SCORE_AMOUNT_NEAR: int = 20          # |diff| < AMOUNT_NEAR_THRESHOLD
    SCORE_AMOUNT_FAR: int = 10           # |diff| < AMOUNT_FAR_THRESHOLD
    SCORE_DIRECTION: int = 25
    AMOUNT_CLOSE_THRESHOLD: Decimal = Decimal("10")
    AMOUNT_NEAR_THRESHOLD: Decimal = Decimal("50")
    AMOUNT_FAR_THRESHOLD: Decimal = Decimal("100")
    AGE_BONUS_PER_MINUTE: float = 0.1
    AGE_BONUS_MAX: float = 10.0

    # Per-payment-type maximum amount; types not listed are unbounded
    PAYMENT_TYPE_LIMITS: dict[str, Decimal] = {
        "venmo": Decimal("5000"),
        "cashapp": Decimal("10000"),
        "paypal": Decimal("10000"),
        "zelle": Decimal("2500"),
        "apple_pay": Decimal("10000"),
        "google_pay": Decimal("10000"),
    }

    # Notifications
    NOTIFICATION_CHANNEL: str = "log"  # "log", "telegram" or "celery"
    NOTIFICATION_QUEUE_SIZE: int = 1000
    NOTIFICATION_WORKERS: int = 2
    NOTIFICATION_TIMEOUT_SECONDS: float = 10.0
    NOTIFICATION_TASK_MAX_RETRIES: int = 5

    # Telegram
    TELEGRAM_API_URL: str = "https://api.telegram.org"
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_DEFAULT_CHAT_ID: str = ""  # operator group when an item has no channel_ref

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
