from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    database_url: str

    # JWT (cookie or bearer session)
    JWT_SECRET: str
    JWT_ISS: str = "shiftboard-api"
    JWT_AUD: str = "shiftboard-web"

    # Cookie
    COOKIE_DOMAIN: str | None = None
    COOKIE_SECURE: bool = True
    ACCESS_TOKEN_TTL_SECONDS: int = 60 * 60 * 24 * 7  # 7 days

    # Cron endpoint bearer secret (unset = open)
    CRON_SECRET: str | None = None

    APP_BASE_URL: str = "http://localhost:3000"

    # Email (SMTP relay; MAIL_PASSWORD holds the provider API key)
    MAIL_USERNAME: str = "resend"
    MAIL_PASSWORD: str = ""
    MAIL_FROM: str = "noreply@example.com"
    MAIL_FROM_NAME: str = "Shift Board"
    MAIL_SERVER: str = "smtp.resend.com"
    MAIL_PORT: int = 587
    MAIL_STARTTLS: bool = True
    MAIL_SSL_TLS: bool = False
    MAIL_SUPPRESS_SEND: bool = False

    EMAIL_BATCH_SIZE: int = 5
    EMAIL_BATCH_DELAY_SECONDS: float = 1.0

    # Business day is computed in this offset (JST by default)
    SCHEDULE_UTC_OFFSET_HOURS: int = 9

    LOGIN_RATE_LIMIT: int = 10
    LOGIN_RATE_WINDOW_SECONDS: int = 60

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000"

    def cors_origins(self) -> list[str]:
        raw = (self.CORS_ORIGINS or "").strip()
        if not raw:
            return []
        return [x.strip() for x in raw.split(",") if x.strip()]


settings = Settings()
