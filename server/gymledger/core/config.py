from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+pysqlite:///./gymledger.db"
    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
    CURRENCY: str = "INR"
    SUBSCRIPTION_LOOKAHEAD_DAYS: int = 7
    SUBSCRIPTION_SWEEP_INTERVAL_HOURS: int = 24
    SCHEDULER_ENABLED: bool = True
    RUN_MIGRATIONS_ON_STARTUP: bool = True
    PAYMENT_EDIT_POLICY: Literal["delta", "collapse"] = "delta"

    class Config:
        env_file = ".env"


settings = Settings()
