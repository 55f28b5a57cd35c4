"""
Tests for configuration and structured logging
"""

import os
import sys
import json
import logging
from decimal import Decimal
from unittest.mock import patch

import pytest

from cash_terminal import config as config_module
from cash_terminal.config import TerminalConfig, get_config, reload_config
from cash_terminal.logging_config import JSONFormatter, log_action, setup_logging


class TestTerminalConfig:
    """Test environment driven configuration"""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = TerminalConfig(_env_file=None)

        assert config.storage_backend == "json"
        assert config.daily_limit_amount == Decimal('1000.00')
        assert config.daily_withdrawal_count == 10
        assert config.recent_transactions_default == 5
        assert config.card_number_length == 16
        assert config.pin_length == 4
        assert config.pin_pattern == ""

    def test_environment_overrides(self):
        env_vars = {
            "CASH_TERMINAL_STORAGE_BACKEND": "sqlite",
            "CASH_TERMINAL_DAILY_WITHDRAWAL_LIMIT": "500.00",
            "CASH_TERMINAL_DAILY_WITHDRAWAL_COUNT": "3",
            "CASH_TERMINAL_PIN_PATTERN": r"\d{6}",
        }

        with patch.dict(os.environ, env_vars):
            config = TerminalConfig()

            assert config.storage_backend == "sqlite"
            assert config.daily_limit_amount == Decimal('500.00')
            assert config.daily_withdrawal_count == 3
            assert config.pin_pattern == r"\d{6}"

    def test_reload_config(self):
        original = get_config()
        try:
            with patch.dict(os.environ, {"CASH_TERMINAL_API_PORT": "9100"}):
                reloaded = reload_config()

            assert reloaded.api_port == 9100
            assert get_config() is reloaded
        finally:
            config_module.config = original


class TestStructuredLogging:
    """Test JSON log output"""

    def make_record(self, message="hello", **attrs):
        record = logging.LogRecord("cash_terminal.test", logging.INFO, __file__, 1, message, (), None)
        for key, value in attrs.items():
            setattr(record, key, value)
        return record

    def test_json_formatter(self):
        record = self.make_record(account_id="ACC001", action="withdraw", extra={"amount": "135.00"})

        entry = json.loads(JSONFormatter().format(record))

        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["account_id"] == "ACC001"
        assert entry["action"] == "withdraw"
        assert entry["extra"] == {"amount": "135.00"}
        assert "correlation_id" not in entry

    def test_json_formatter_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("cash_terminal.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]

    def test_log_action(self, tmp_path):
        log_file = tmp_path / "terminal.log"
        logger = setup_logging("INFO", logger_name="cash_terminal.test_log_action", log_file=str(log_file))

        log_action(logger, "info", "Deposited $20.00", account_id="ACC001",
                   action="deposit", resource="account", extra={"amount": "20.00"})
        log_action(logger, "debug", "hidden")
        for handler in logger.handlers:
            handler.flush()

        lines = log_file.read_text().splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["message"] == "Deposited $20.00"
        assert entry["account_id"] == "ACC001"
        assert entry["resource"] == "account"
        assert entry["extra"] == {"amount": "20.00"}

        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    def test_setup_logging_replaces_handlers(self):
        name = "cash_terminal.test_setup"
        setup_logging("INFO", logger_name=name)
        logger = setup_logging("WARNING", logger_name=name, fmt="text")

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert not logger.propagate

    def test_invalid_level(self):
        with pytest.raises(AttributeError):
            setup_logging("LOUD", logger_name="cash_terminal.test_invalid")
