"""
Tests for configuration loading
"""
import pytest
from pathlib import Path

from engagement.core.config import ConfigManager, EngagementConfig, Settings


def write_yaml(directory: Path, name: str, content: str) -> None:
    (directory / name).write_text(content)


class TestConfigManager:
    """Tests for YAML loading and merging"""

    def test_repository_defaults(self):
        config = ConfigManager(env="test").engagement_config()

        assert config.business.slot_minutes == 30
        assert config.business.hours[5].start == "10:00"
        assert 6 not in config.business.hours
        assert config.booking.lookahead_days == 14
        assert config.leads.follow_up_days["urgent"] == 1
        assert config.leads.max_follow_ups == 5
        assert config.automation.reminder_tolerance_minutes == 60
        assert config.automation.follow_up_hour == 10

    def test_get_dot_path(self):
        manager = ConfigManager(env="test")

        assert manager.get("leads.max_follow_ups") == 5
        assert manager.get("leads.missing", "fallback") == "fallback"
        assert manager.get("business.hours.0.start") is None

    def test_env_override_file(self, tmp_path):
        write_yaml(tmp_path, "default.yaml", "leads:\n  max_follow_ups: 5\n  recency_window_days: 7\n")
        write_yaml(tmp_path, "staging.yaml", "leads:\n  max_follow_ups: 3\n")

        manager = ConfigManager(env="staging", config_dir=tmp_path)

        assert manager.get("leads.max_follow_ups") == 3
        assert manager.get("leads.recency_window_days") == 7

    def test_env_var_substitution(self, tmp_path, monkeypatch):
        write_yaml(tmp_path, "default.yaml", (
            "business:\n"
            "  timezone: ${BUSINESS_TIMEZONE}\n"
            "site:\n"
            "  name: ${SITE_NAME:-Acme Advisors}\n"
        ))
        monkeypatch.setenv("BUSINESS_TIMEZONE", "Asia/Kolkata")
        monkeypatch.delenv("SITE_NAME", raising=False)

        config = ConfigManager(env="test", config_dir=tmp_path).engagement_config()

        assert config.business.timezone == "Asia/Kolkata"
        assert config.site.name == "Acme Advisors"

    def test_unset_var_falls_back_to_model_default(self, tmp_path, monkeypatch):
        write_yaml(tmp_path, "default.yaml", "business:\n  timezone: ${BUSINESS_TIMEZONE}\n")
        monkeypatch.delenv("BUSINESS_TIMEZONE", raising=False)

        config = ConfigManager(env="test", config_dir=tmp_path).engagement_config()

        assert config.business.timezone == "UTC"

    def test_missing_directory_gives_defaults(self, tmp_path):
        config = ConfigManager(env="test", config_dir=tmp_path / "absent").engagement_config()
        assert config == EngagementConfig()

    def test_invalid_policy_rejected(self, tmp_path):
        write_yaml(tmp_path, "default.yaml", "automation:\n  follow_up_hour: 25\n")

        with pytest.raises(ValueError):
            ConfigManager(env="test", config_dir=tmp_path).engagement_config()


class TestSettings:
    """Tests for environment settings"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("NOTIFIER", raising=False)
        settings = Settings(_env_file=None)

        assert settings.notifier == "logging"
        assert settings.smtp_port == 587

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://db/engagement")
        monkeypatch.setenv("NOTIFIER", "smtp")
        monkeypatch.setenv("SMTP_PORT", "2525")

        settings = Settings(_env_file=None)

        assert settings.database_url == "postgresql://db/engagement"
        assert settings.notifier == "smtp"
        assert settings.smtp_port == 2525
