"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class BackOfficeConfig(BaseSettings):
    """Back office banking configuration"""

    model_config = SettingsConfigDict(
        env_prefix="BACKOFFICE_",
        env_file=".env",
        case_sensitive=False,
    )

    # Database configuration
    database_url: str = "sqlite:///back_office.db"  # memory://, sqlite:///path, postgresql://...
    database_timeout: float = 30.0  # Seconds to wait for a locked database

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    cors_origins: List[str] = ["*"]

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Business rules configuration
    account_number_floor: int = 1001  # First number handed out when no accounts exist
    locker_key_min_length: int = 8
    locker_key_prefix: str = "LOCK"


# Global configuration instance
config = BackOfficeConfig()


def get_config() -> BackOfficeConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BackOfficeConfig:
    """Reload configuration from environment"""
    global config
    config = BackOfficeConfig()
    return config
