from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Catalog Lists"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./catalog.db"

    # Transaction retry policy (serialization failures, dropped connections)
    transaction_max_retries: int = 3
    transaction_retry_backoff: list[float] = [0.05, 0.2, 0.5]

    # Review ratings
    rating_min: float = 0.5
    rating_max: float = 5.0

    # Slugs
    slug_max_title_length: int = 100
    slug_max_attempts: int = 1000

    # Unique list views
    view_dedup_window_hours: int = 24

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()
