# app/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore")

    APP_NAME: str = "PrimeGenesis Auth API"
    LOG_LEVEL: str = "INFO"

    JWT_SECRET: str = Field(...)
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    CHALLENGE_TOKEN_EXPIRE_MINUTES: int = 5

    # 32 bytes en hex (64 caracteres), sin esto el server no arranca
    TOTP_ENCRYPTION_KEY: str = Field(...)
    TOTP_ISSUER: str = "PrimeGenesis"
    TOTP_ENROLLMENT_TTL_SECONDS: int = 600
    TOTP_CHALLENGE_TTL_SECONDS: int = 300
    TOTP_MAX_ATTEMPTS: int = 5
    TOTP_LOCKOUT_SECONDS: int = 900   # ventana del contador de fallos de login por principal

    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "primegenesis"
    DB_PASSWORD: str = ""
    DB_NAME: str = "primegenesis"
    DATABASE_URL: str | None = None   # override completo (tests, sqlite)

    CORS_ORIGINS: list[str] = ["http://localhost:5000", "http://127.0.0.1:5000"]

    NOTIFY_WEBHOOK_URL: str | None = None
    NOTIFY_MAX_RETRIES: int = 3
    NOTIFY_TIMEOUT_SECONDS: float = 5.0

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
                f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4")


settings = Settings()  # type: ignore[call-arg]
