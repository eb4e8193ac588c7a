from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "CASHDESK"
    DATABASE_URL: str = "sqlite+pysqlite:///./cashdesk.db"
    LOG_LEVEL: str = "INFO"
    METRICS_ENABLED: bool = True
    LIST_MAX_PAGE_SIZE: int = 200
    DAILY_SUMMARY_TIMEZONE: str = "UTC"


settings = Settings()
