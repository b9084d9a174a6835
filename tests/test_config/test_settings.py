"""Tests for settings and component configuration."""

import pytest
from pydantic import ValidationError

from regwatch.alerts.config import ClassifierConfig, DedupConfig
from regwatch.config.settings import Settings
from regwatch.notifications.dispatcher import NotificationConfig
from regwatch.pipeline.config import PipelineConfig


class TestSettings:
    """Tests for the central Settings object."""

    def test_defaults(self, test_settings):
        assert test_settings.max_http_retries == 3
        assert test_settings.alert_enabled is False
        assert test_settings.is_production is False

    def test_integrations_unconfigured(self, test_settings):
        assert test_settings.slack_configured is False
        assert test_settings.pagerduty_configured is False
        assert test_settings.summarizer_configured is False

    def test_integrations_configured(self):
        settings = Settings(
            slack_webhook_url="https://hooks.slack.com/services/T/B/X",
            pagerduty_routing_key="routing-key",
            openai_api_key="sk-test",
        )
        assert settings.slack_configured is True
        assert settings.pagerduty_configured is True
        assert settings.summarizer_configured is True

    def test_api_key_for_unwraps_secret(self):
        settings = Settings(openfda_api_key="fda-key")
        assert settings.api_key_for("openfda_api_key") == "fda-key"

    def test_api_key_for_missing(self, test_settings):
        assert test_settings.api_key_for(None) is None
        assert test_settings.api_key_for("no_such_key") is None

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ALERT_ENABLED", "true")
        monkeypatch.setenv("MAX_HTTP_RETRIES", "5")
        settings = Settings()
        assert settings.alert_enabled is True
        assert settings.max_http_retries == 5

    def test_invalid_retry_count(self):
        with pytest.raises(ValidationError):
            Settings(max_http_retries=0)


class TestClassifierConfig:
    """Tests for urgency policy configuration."""

    def test_default_thresholds_ordered(self):
        config = ClassifierConfig()
        assert config.medium_threshold <= config.high_threshold <= config.critical_threshold

    def test_rejects_unordered_thresholds(self):
        with pytest.raises(ValidationError):
            ClassifierConfig(medium_threshold=15, high_threshold=10)

    def test_rejects_recent_shorter_than_fresh(self):
        with pytest.raises(ValidationError):
            ClassifierConfig(fresh_hours=48, recent_hours=24)

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("CLASSIFIER_HIGH_THRESHOLD", "15")
        assert ClassifierConfig().high_threshold == 15


class TestComponentConfigs:
    """Defaults of the per-component BaseSettings."""

    def test_dedup_defaults(self):
        config = DedupConfig()
        assert config.title_window_days == 7
        assert config.url_window_days == 30

    def test_pipeline_defaults(self):
        config = PipelineConfig()
        assert config.max_concurrent_sources == 5
        assert config.scratch_table == "alerts_test_runs"

    def test_pipeline_rejects_bad_scratch_table(self):
        with pytest.raises(ValidationError):
            PipelineConfig(scratch_table="alerts; DROP TABLE alerts")

    def test_notification_defaults(self):
        config = NotificationConfig()
        assert config.unhealthy_after_failures == 3
        assert config.retry_max_attempts == 2
