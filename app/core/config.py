from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "inquiry-board"
    SITE_URL: str = "http://localhost:3000"

    ADMIN_JWT_TTL_MINUTES: int = 240
    ADMIN_JWT_SECRET: str = "change_me_admin"
    ADMIN_EMAIL: str = "admin@example.com"
    ADMIN_PASSWORD_HASH: str = ""

    CORS_ORIGINS: str = "http://localhost:3000"

    DATABASE_URL: str
    # Empty keeps password-attempt counters in process memory.
    REDIS_URL: str = ""

    # Symmetric key for contact emails at rest. No default: the process must not start without it.
    INQUIRY_ENCRYPTION_KEY: str
    INQUIRY_ACCESS_JWT_SECRET: str = "change_me_inquiry_access"
    INQUIRY_ACCESS_TTL_MINUTES: int = 30
    INQUIRY_ACCESS_COOKIE_NAME: str = "inquiry_access"
    INQUIRY_PASSWORD_RATE_LIMIT: int = 10
    INQUIRY_PASSWORD_RATE_LIMIT_WINDOW_SECONDS: int = 300

    EMAIL_PROVIDER: str = "dummy"  # dummy | smtp | service
    EMAIL_TIMEOUT_SECONDS: float = 10.0
    EMAIL_FROM_NAME: str = "Greensupia"
    EMAIL_SERVICE_URL: str = "http://email-service:8010"
    INTERNAL_SERVICE_TOKEN: str = "change_me_internal_service_token"
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False

    # Compose/infra vars that may exist in shared .env
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "inquiry"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
