"""
Tests for configuration validation
"""
import pytest
from pydantic import ValidationError
from ems.core.config import Settings


def _settings(**overrides):
    values = dict(
        DATABASE_URL="postgresql://test",
        JWT_SECRET_KEY="a" * 32,
        APP_ENV="prod",
        ALLOWED_ORIGINS="https://hr.example.com",
    )
    values.update(overrides)
    return Settings(**values)


def test_prod_settings_rejects_wildcard_origins():
    settings = _settings(ALLOWED_ORIGINS="*")
    with pytest.raises(ValueError, match="ALLOWED_ORIGINS"):
        settings.validate_production()


def test_prod_settings_rejects_short_jwt_secret():
    settings = _settings(JWT_SECRET_KEY="short")
    with pytest.raises(ValueError, match="JWT_SECRET_KEY"):
        settings.validate_production()


def test_prod_settings_rejects_refresh_window_not_longer_than_access_window():
    settings = _settings(JWT_EXPIRE_MINUTES=60, JWT_REFRESH_EXPIRE_MINUTES=60)
    with pytest.raises(ValueError, match="JWT_REFRESH_EXPIRE_MINUTES"):
        settings.validate_production()


def test_valid_prod_settings_pass():
    _settings().validate_production()


def test_local_settings_allows_wildcard_origins():
    settings = _settings(APP_ENV="local", JWT_SECRET_KEY="test-key", ALLOWED_ORIGINS="*")
    settings.validate_production()
    assert settings.get_allowed_origins_list() == ["*"]


def test_allowed_origins_are_split_and_trimmed():
    settings = _settings(ALLOWED_ORIGINS="https://a.example.com, https://b.example.com,")
    assert settings.get_allowed_origins_list() == ["https://a.example.com", "https://b.example.com"]


def test_invalid_app_env_rejected():
    with pytest.raises(ValidationError):
        _settings(APP_ENV="production")


def test_log_level_is_normalized():
    assert _settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"


def test_audit_attempts_must_be_positive():
    with pytest.raises(ValidationError):
        _settings(AUDIT_MAX_ATTEMPTS=0)
