"""
Tests for configuration loading.
"""

import pytest
from pathlib import Path

from expenseflow.config import AppSettings, StorageSettings, get_settings, validate_all_settings


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("EXPENSEFLOW_STORAGE_DATA_DIR")
        monkeypatch.delenv("EXPENSEFLOW_STORAGE_RETRY_WAIT_SECONDS")
        storage = StorageSettings()
        app = AppSettings()
        assert storage.backend == "memory"
        assert storage.data_dir == Path(".expenseflow")
        assert storage.retry_attempts == 3
        assert app.budget_alert_threshold == 80.0
        assert app.reconcile_on_load is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("EXPENSEFLOW_STORAGE_BACKEND", "json")
        monkeypatch.setenv("EXPENSEFLOW_BUDGET_ALERT_THRESHOLD", "90")
        monkeypatch.setenv("EXPENSEFLOW_LOG_LEVEL", "debug")
        settings = get_settings()
        assert settings.storage.backend == "json"
        assert settings.app.budget_alert_threshold == 90.0
        assert settings.app.log_level == "DEBUG"

    def test_unknown_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("EXPENSEFLOW_STORAGE_BACKEND", "sqlite")
        with pytest.raises(ValueError):
            StorageSettings()

    def test_unknown_log_level_rejected(self, monkeypatch):
        monkeypatch.setenv("EXPENSEFLOW_LOG_LEVEL", "LOUD")
        with pytest.raises(ValueError):
            AppSettings()

    def test_validate_all_settings(self, monkeypatch):
        assert validate_all_settings() == {"storage": True, "app": True}

        monkeypatch.setenv("EXPENSEFLOW_STORAGE_RETRY_ATTEMPTS", "0")
        results = validate_all_settings()
        assert results["storage"] is False
        assert "storage_error" in results


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
