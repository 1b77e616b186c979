from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


class Settings(BaseSettings):
    APP_NAME: str = "Billcycle Backend"
    ENV: str = "dev"

    # apps/backend/db.sqlite3 as an absolute path so the CWD does not matter
    _default_db_path = Path(__file__).resolve().parents[2] / "db.sqlite3"
    DATABASE_URL: str = f"sqlite:///{_default_db_path}"

    CORS_ORIGINS: list[str] = ["*"]
    TIMEZONE: str = "America/Sao_Paulo"
    LOG_LEVEL: str = "INFO"

    # Billing cycle policy
    DEFAULT_CLOSING_DAY: int = 13
    BILL_PERIOD_COUNT: int = 6
    DUE_DATE_OFFSET_DAYS: int = 7
    GENERATED_ENTRY_DAY: int = 15

    # Reconciliation / retention policy
    CARRYOVER_AMOUNT_TOLERANCE: float = 0.5
    TRASH_RETENTION_DAYS: int = 30
    DEFAULT_IMPORT_ORIGIN: str = "Importacao CSV"

    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="BILLCYCLE_", case_sensitive=False)


settings = Settings()
