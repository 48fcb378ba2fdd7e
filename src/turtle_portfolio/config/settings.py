"""Application settings and configuration."""

from decimal import Decimal
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_default_data_dir() -> Path:
    """Return the default data directory."""
    return Path.home() / ".turtle-portfolio"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Turtle Portfolio Service"
    app_version: str = "0.1.0"

    # Data directory (all app data lives here)
    data_dir: Optional[Path] = None

    # Database URL (derived from data_dir if not set explicitly)
    database_url: Optional[str] = None

    log_level: str = "INFO"

    # Portfolio bootstrap
    default_account_id: str = "default"
    default_initial_balance: Decimal = Decimal("50000000")

    # Kiwoom REST API (read via KIWOOM_APP_KEY / KIWOOM_SECRET_KEY)
    kiwoom_app_key: Optional[str] = None
    kiwoom_secret_key: Optional[str] = None
    kiwoom_base_url: str = "https://api.kiwoom.com"
    kiwoom_mock_url: str = "https://mockapi.kiwoom.com"
    kiwoom_use_mock: bool = False
    broker_timeout_seconds: float = 5.0

    # Risk configuration served with live broker views
    fallback_max_risk_per_trade: Decimal = Decimal("100000")
    fallback_max_total_risk: Decimal = Decimal("400000")
    fallback_min_cash_reserve: Decimal = Decimal("200000")
    live_view_uses_account_risk_settings: bool = False

    @property
    def broker_credentials_configured(self) -> bool:
        """True when both Kiwoom credentials are present."""
        return bool(self.kiwoom_app_key and self.kiwoom_secret_key)

    @property
    def kiwoom_url(self) -> str:
        """Base URL of the Kiwoom server in use (real or mock)."""
        return self.kiwoom_mock_url if self.kiwoom_use_mock else self.kiwoom_base_url

    def get_data_dir(self) -> Path:
        """Get the data directory, creating it if needed."""
        data_dir = self.data_dir or get_default_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def get_database_url(self) -> str:
        """Get database URL, deriving from data_dir if not set."""
        if self.database_url:
            return self.database_url
        db_path = self.get_data_dir() / "portfolio.db"
        return f"sqlite:///{db_path}"


# Global settings instance (can be replaced at runtime)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the current settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set the global settings instance (used by tests and embedding code)."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Reset settings to force reload."""
    global _settings
    _settings = None
