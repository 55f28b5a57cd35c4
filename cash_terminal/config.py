"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import Optional


class TerminalConfig(BaseSettings):
    """Cash terminal configuration"""

    # Storage configuration
    storage_backend: str = "json"  # memory, json or sqlite
    accounts_file: str = "accounts.json"
    database_path: str = "cash_terminal.db"

    # Withdrawal rules
    daily_withdrawal_limit: str = "1000.00"
    daily_withdrawal_count: int = 10
    recent_transactions_default: int = 5

    # Credential issuance
    card_number_length: int = 16
    pin_length: int = 4
    pin_pattern: str = ""  # Regex a new PIN must fully match; empty = any non-empty PIN

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    class Config:
        env_prefix = "CASH_TERMINAL_"
        env_file = ".env"
        case_sensitive = False

    @property
    def daily_limit_amount(self) -> Decimal:
        return Decimal(self.daily_withdrawal_limit)


# Global configuration instance
config = TerminalConfig()


def get_config() -> TerminalConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> TerminalConfig:
    """Reload configuration from environment"""
    global config
    config = TerminalConfig()
    return config
