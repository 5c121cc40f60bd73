from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Either a full DATABASE_URL or the DB_* parts for MySQL
    DATABASE_URL: str | None = None
    DB_USER: str = "unveil"
    DB_PASSWORD: str = ""
    DB_HOST: str = "localhost"
    DB_PORT: str = "3306"
    DB_NAME: str = "unveil"
    DB_CONNECT_TIMEOUT: int = 10

    API_PREFIX: str = "/api/v1"
    CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    # Verification
    CODE_EXPIRY_MINUTES: int = 10
    TOKEN_EXPIRY_HOURS: int = 24
    MAX_ATTEMPTS: int = 5
    RATE_LIMIT_MINUTES: int = 1
    IP_MAX_VERIFY_ATTEMPTS: int = 10
    IP_ATTEMPT_WINDOW_MINUTES: int = 60
    JWT_SECRET: str = "change-me-to-a-long-random-secret-of-at-least-32-bytes"
    JWT_ALGORITHM: str = "HS256"

    # Case submissions
    SUBMISSION_COOLDOWN_MINUTES: int = 5
    MAX_SUBMISSIONS_PER_EMAIL_PER_DAY: int = 5
    MAX_SUBMISSIONS_PER_IP_PER_DAY: int = 3

    # Mail delivery: console | smtp | http
    MAIL_BACKEND: str = "console"
    MAIL_FROM: str = "noreply@unveil.com"
    MAIL_FROM_NAME: str = "Unveil"
    MAIL_TIMEOUT_SECONDS: float = 10.0
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    MAIL_API_URL: str = ""
    MAIL_API_KEY: str = ""

    ADMIN_API_KEY: str | None = None

    @property
    def SQLALCHEMY_DATABASE_URI(self):
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"mysql+pymysql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    class Config:
        env_file = ".env"

settings = Settings()
