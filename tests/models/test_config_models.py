"""
Tests for ResolverConfig.
"""

import pytest
from pydantic import ValidationError

from soundprint.models.config_models import ResolverConfig


def test_defaults():
    config = ResolverConfig()

    assert config.default_track_limit == 8
    assert config.max_retries == 2
    assert config.backoff_base_ms == 500
    assert config.request_timeout_seconds == 8.0
    assert config.cache_enabled is False
    assert config.resolve_missing_individually is True


@pytest.mark.parametrize("limit,expected", [(None, 8), (1, 1), (10, 10), (0, 1), (-3, 1), (25, 10)])
def test_clamp_limit(limit, expected):
    assert ResolverConfig().clamp_limit(limit) == expected


def test_invalid_values_rejected():
    with pytest.raises(ValidationError):
        ResolverConfig(max_retries=-1)
    with pytest.raises(ValidationError):
        ResolverConfig(default_track_limit=11)


def test_from_env(monkeypatch):
    monkeypatch.setenv("SPOTIFY_CLIENT_ID", "client")
    monkeypatch.setenv("SPOTIFY_CLIENT_SECRET", "secret")
    monkeypatch.setenv("SPOTIFY_MARKET", "GB")
    monkeypatch.setenv("RAPIDAPI_KEY", "rapid")
    monkeypatch.setenv("RAPIDAPI_HOST", "host.example")
    monkeypatch.setenv("GETSONGBPM_API_KEY", "")
    monkeypatch.setenv("SOUNDPRINT_CACHE_ENABLED", "true")
    monkeypatch.setenv("SOUNDPRINT_CACHE_DIR", "/tmp/soundprint")

    config = ResolverConfig.from_env(dotenv=False)

    assert config.spotify_client_id == "client"
    assert config.spotify_market == "GB"
    assert config.rapidapi_host == "host.example"
    assert config.getsongbpm_api_key is None
    assert config.cache_enabled is True
    assert config.cache_directory == "/tmp/soundprint"


def test_from_env_without_variables(monkeypatch):
    for name in ("SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "SPOTIFY_MARKET", "SOUNDPRINT_CACHE_ENABLED"):
        monkeypatch.delenv(name, raising=False)

    config = ResolverConfig.from_env(dotenv=False)

    assert config.spotify_client_id is None
    assert config.spotify_market == "US"
    assert config.cache_enabled is False
