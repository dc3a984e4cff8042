from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # Database
    DATABASE_URL: Optional[str] = None
    DB_CONNECT_RETRIES: int = 2

    # JWT Authentication
    SECRET_KEY: str = "change-this-in-production-secret-key-12345"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Application
    APP_NAME: str = "Stock Ledger Service"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["*"]  # Restrict in production

    # Ledger
    LEDGER_QUERY_DEFAULT_LIMIT: int = 50
    LEDGER_QUERY_MAX_LIMIT: int = 1000
    LEDGER_RETENTION_MIN_DAYS: int = 90

    # Reports
    REPORT_TIMEOUT_SECONDS: float = 30.0
    CONSUMPTION_HISTORY_ENTRIES: int = 50

    # Stock telemetry
    LARGE_REDUCTION_RATIO: float = 0.5

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
