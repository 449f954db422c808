from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    BOOKING_API_BASE_URL: str = "https://api.theopenshift.com"
    BOOKING_API_ACCESS_TOKEN: str | None = None
    BOOKING_API_TIMEOUT_SECONDS: float = 10.0

    MIN_RECOMMENDED_RATE: float = 30.0
    TIMESHEET_ENFORCE_CHECKPOINT_ORDER: bool = True
    LOCAL_TIMEZONE: str = "UTC"
    CLOCK_TICK_SECONDS: float = 1.0

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"


settings = Settings()
