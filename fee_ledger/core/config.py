from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Reference numbers: PREFIX-000123
    reference_prefix: str = Field("FEE", alias="REFERENCE_PREFIX")
    receipt_prefix: str = Field("RCP", alias="RECEIPT_PREFIX")
    reference_width: int = Field(6, alias="REFERENCE_WIDTH")

    default_payment_method: str = Field("cash", alias="DEFAULT_PAYMENT_METHOD")

    # Scheduled reconciliation sweep
    sweep_interval_minutes: int = Field(5, ge=1, le=1440, alias="SWEEP_INTERVAL_MINUTES")
    sweep_item_timeout_seconds: float = Field(30.0, gt=0, alias="SWEEP_ITEM_TIMEOUT_SECONDS")
    sweep_autostart: bool = Field(False, alias="SWEEP_AUTOSTART")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
