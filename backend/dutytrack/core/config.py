from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    DATABASE_URL: str = "postgresql+asyncpg://duty:duty_secret@db:5432/dutytrack"
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # "sql" keeps documents in the database, "memory" in the process (dev only)
    STORE_BACKEND: Literal["sql", "memory"] = "sql"

    MIN_PASSWORD_LENGTH: int = 6

    # Wall-clock zone used to decide which calendar day "today" is
    TIMEZONE: str = "UTC"

    LOCATION_TIME_INTERVAL_SEC: int = 30
    LOCATION_DISTANCE_INTERVAL_M: int = 10

    ATTENDANCE_HISTORY_LIMIT: int = 10

    LOG_LEVEL: str = "INFO"
    RUN_MIGRATIONS_ON_STARTUP: bool = True
    CORS_ORIGINS: list[str] = ["http://localhost:8081", "http://localhost:19006"]


settings = Settings()
