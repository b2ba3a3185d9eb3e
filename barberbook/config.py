# barberbook/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./barber.db"
    DATABASE_ECHO: bool = False

    SECRET_KEY: str = "change-me-later"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    BUSINESS_TIMEZONE: str = "America/Sao_Paulo"
    SLOT_INTERVAL_MINUTES: int = 15
    SAFETY_MARGIN_MINUTES: int = 1
    # Treat "opening hours not loaded yet" as open when listing slots.
    # Booking writes are still refused until real hours exist.
    FAIL_OPEN_ON_UNLOADED_CONFIG: bool = True

    SNAPSHOT_TTL_SECONDS: float = 30.0

    LOG_LEVEL: str = "INFO"


settings = Settings()
