"""Tests for adaudit settings."""

from adaudit.config import AdAuditSettings


def test_defaults():
    config = AdAuditSettings(_env_file=None)
    assert config.stream_grace_seconds == 0.5
    assert config.step_names == ["Campaigns", "Ad Sets", "Creatives"]


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("ADAUDIT_API_URL", "https://audit.example.com")
    monkeypatch.setenv("ADAUDIT_STREAM_GRACE_SECONDS", "1.5")
    monkeypatch.setenv("ADAUDIT_SYNC_STEP_NAMES", "Campaigns, ,Creatives ")

    config = AdAuditSettings(_env_file=None)

    assert config.api_url == "https://audit.example.com"
    assert config.stream_grace_seconds == 1.5
    assert config.step_names == ["Campaigns", "Creatives"]


def test_has_token():
    assert not AdAuditSettings(_env_file=None, api_token="  ").has_token
    assert AdAuditSettings(_env_file=None, api_token="abc").has_token
