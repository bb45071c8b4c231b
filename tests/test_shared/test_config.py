"""
Tests for environment-driven settings.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from shared.config import DEFAULT_DATA_DIR, Settings


class TestSettings:
    """Tests for Settings.from_env."""

    def test_defaults(self):
        settings = Settings.from_env({})

        assert settings.data_dir == DEFAULT_DATA_DIR
        assert settings.persist is False
        assert settings.fetch_timeout == 2.0
        assert settings.log_level == "INFO"

    def test_reads_environment(self, tmp_path: Path):
        settings = Settings.from_env({
            "STOREFRONT_DATA_DIR": str(tmp_path),
            "STOREFRONT_PERSIST": "yes",
            "STOREFRONT_FETCH_TIMEOUT": "0.5",
            "STOREFRONT_LOG_LEVEL": "debug",
        })

        assert settings.data_dir == tmp_path
        assert settings.persist is True
        assert settings.fetch_timeout == 0.5
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("raw", ["0", "false", "no", "off", ""])
    def test_persist_falsey_values(self, raw):
        assert Settings.from_env({"STOREFRONT_PERSIST": raw}).persist is False

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            Settings.from_env({"STOREFRONT_LOG_LEVEL": "chatty"})

    def test_non_positive_timeout(self):
        with pytest.raises(ValidationError):
            Settings.from_env({"STOREFRONT_FETCH_TIMEOUT": "0"})
