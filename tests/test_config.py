"""Tests for client settings."""

import pytest
from pydantic import ValidationError

from orgregistry.config import RegistrySettings
from orgregistry.forms import CoordinatesPolicy
from orgregistry.sync import history_policy, live_policy


def test_defaults():
    settings = RegistrySettings(_env_file=None)
    assert settings.live_poll_interval == 1.0
    assert settings.history_poll_interval == 4.0
    assert settings.cascade_conflict_code == "CASCADE_REQUIRED"
    assert CoordinatesPolicy.from_settings(settings) == CoordinatesPolicy()


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("GATEWAY_URL", "http://gateway:8080/")
    monkeypatch.setenv("CORS_ORIGINS", '["http://a"]')
    monkeypatch.setenv("COORDINATES_X_MAX", "882")
    settings = RegistrySettings(_env_file=None)
    assert settings.gateway_url == "http://gateway:8080"
    assert settings.cors_origins == ["http://a"]
    assert CoordinatesPolicy.from_settings(settings).x_max == 882


def test_poll_interval_must_be_positive():
    with pytest.raises(ValidationError):
        RegistrySettings(_env_file=None, live_poll_interval=0)


def test_production_requires_https():
    with pytest.raises(ValidationError):
        RegistrySettings(_env_file=None, app_env="production", gateway_url="http://x")


def test_policies_follow_settings():
    settings = RegistrySettings(_env_file=None, live_poll_interval=0.5, history_poll_interval=2)
    assert live_policy(settings).seconds == 0.5
    assert history_policy(settings).seconds == 2
