from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "ASYNCX"
    SERVICE_NAME: str = "ASYNCX-API"
    CORS_ORIGINS: List[str] = [
        "https://gilson-ferrer.github.io",
        "https://www.asyncx.com.br",
        "https://asyncx.com.br",
    ]

    # Frontend Configuration
    FRONTEND_URL: str = "https://asyncx.com.br"
    ACTIVATION_PATH: str = "/ativar.html"

    # MongoDB Configuration
    MONGO_URI: str
    MONGO_DB_NAME: str = "asyncx"

    # Session tokens
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120

    # Credentials
    PASSWORD_HASH_ROUNDS: int = 10
    PASSWORD_MIN_LENGTH: int = 8
    RESET_TOKEN_EXPIRE_MINUTES: int = 60

    # TOTP
    TOTP_ISSUER: str = "ASYNCX"
    TOTP_VALID_WINDOW: int = 1
    # When False a wrong one-time code gets the same message as a wrong password
    DISTINGUISH_MFA_FAILURE: bool = True

    # Telegram (lead notifications)
    TELEGRAM_BOT_TOKEN: Optional[str] = None
    TELEGRAM_CHAT_ID: Optional[str] = None

    # Resend (transactional email)
    RESEND_API_KEY: Optional[str] = None
    RESEND_FROM_EMAIL: Optional[str] = None

    NOTIFY_TIMEOUT_SECONDS: float = 10.0

    # Stripe Configuration
    STRIPE_WEBHOOK_SECRET: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra env variables

    @property
    def activation_url(self) -> str:
        return f"{self.FRONTEND_URL.rstrip('/')}{self.ACTIVATION_PATH}"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
