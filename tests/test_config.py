"""Tests for configuration module."""

from lifton.config import Settings


def test_defaults(monkeypatch):
    for key in ("BID_TTL_SEC", "BARGAIN_TTL_SEC", "BID_FLOOR_RATIO", "PLATFORM_FEE_RATE", "HOUSEKEEPING_ENABLED"):
        monkeypatch.delenv(key, raising=False)
    s = Settings(_env_file=None)
    assert s.BID_TTL_SEC == 300
    assert s.BARGAIN_TTL_SEC == 300
    assert s.BID_FLOOR_RATIO == "0.7"
    assert s.PLATFORM_FEE_RATE == "0.05"
    assert s.HOUSEKEEPING_ENABLED is False
    assert s.JWT_ALG == "HS256"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("BID_TTL_SEC", "120")
    monkeypatch.setenv("housekeeping_enabled", "true")
    monkeypatch.setenv("NOTIFY_WEBHOOK_URL", "https://hooks.example.test/lifton")
    s = Settings(_env_file=None)
    assert s.BID_TTL_SEC == 120
    assert s.HOUSEKEEPING_ENABLED is True
    assert s.NOTIFY_WEBHOOK_URL == "https://hooks.example.test/lifton"


def test_jwt_secret_alias(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    monkeypatch.setenv("JWT_SECRET", "from-alias")
    assert Settings(_env_file=None).SECRET_KEY == "from-alias"
