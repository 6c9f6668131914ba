from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Ward stock settings.

    Read from MEDSTOCK_* environment variables, then a local .env file.
    """
    # Application
    app_env: str = "local"
    log_level: str = "INFO"

    # Persistence
    data_dir: str = Field(default="ward_data", description="Directory for the JSON store, relative to the repo root")
    store_backend: Literal["json", "memory"] = "json"
    seed_on_empty: bool = Field(default=True, description="Load the default formulary when no medications are stored")

    # Stock rules
    default_min_threshold: int = Field(default=5, ge=0, description="Low-stock threshold for records without one")
    max_dispense_quantity: Optional[int] = Field(default=None, gt=0, description="Largest single administration")

    # Dashboard
    dashboard_top_categories: int = Field(default=5, gt=0)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", env_prefix="MEDSTOCK_")


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Build the settings on first use and reuse them afterwards."""
    global _config
    if _config is None:
        _config = AppConfig()
    return _config


def set_config_for_test(**overrides) -> AppConfig:
    """Replace the shared settings; used by the test fixtures."""
    global _config
    _config = AppConfig(**overrides)
    return _config
