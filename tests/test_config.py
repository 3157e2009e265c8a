"""Unit tests for startup configuration."""

from pathlib import Path

import pytest

from config import (
    DEVELOPMENT_API_URL,
    PRODUCTION_API_URL,
    ServerConfig,
    detect_environment,
)


@pytest.mark.parametrize(
    ("hostname", "expected"),
    [
        ("localhost", "development"),
        ("127.0.0.1", "development"),
        ("watch.unrulymovies.com", "production"),
        ("unrulymovies.com", "production"),
        ("deploy-preview-12--site.netlify.app", "production"),
        ("example.org", "production"),
    ],
)
def test_detect_environment(hostname: str, expected: str) -> None:
    assert detect_environment(hostname) == expected


def test_defaults_without_env_use_frontend_profile() -> None:
    config = ServerConfig.from_env({})

    assert config.port == 8080
    assert config.site == "frontend"
    assert config.environment == "development"
    assert config.api_base_url == DEVELOPMENT_API_URL
    assert config.disable_cache is True


def test_port_env_var_overrides_profile_port() -> None:
    config = ServerConfig.from_env({"FRONTEND_PORT": "9001"}, site="tv")

    assert config.port == 9001


def test_tv_profile_defaults_to_port_3000() -> None:
    assert ServerConfig.from_env({}, site="tv").port == 3000


def test_invalid_port_env_var_is_rejected() -> None:
    with pytest.raises(ValueError, match="FRONTEND_PORT"):
        ServerConfig.from_env({"FRONTEND_PORT": "eighty"})


def test_unknown_profile_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown site profile"):
        ServerConfig.from_env({}, site="radio")


def test_production_hostname_selects_production_api() -> None:
    config = ServerConfig.from_env({}, site="tv", hostname="watch.unrulymovies.com")

    assert config.environment == "production"
    assert config.api_base_url == PRODUCTION_API_URL
    assert config.disable_cache is False


def test_hostname_can_come_from_environment() -> None:
    config = ServerConfig.from_env({"SITE_HOSTNAME": "unrulymovies.com"})

    assert config.environment == "production"


def test_dev_mode_flag_forces_development() -> None:
    config = ServerConfig.from_env(
        {"SITE_DEV_MODE": "true"},
        site="tv",
        hostname="unrulymovies.com",
    )

    assert config.environment == "development"
    assert config.disable_cache is True


def test_explicit_overrides_win_and_none_is_ignored(tmp_path: Path) -> None:
    config = ServerConfig.from_env(
        {"FRONTEND_PORT": "9001"},
        port=0,
        root=str(tmp_path),
        host=None,
        log_format="json",
    )

    assert config.port == 0
    assert config.root == tmp_path
    assert config.host == "127.0.0.1"
    assert config.log_format == "json"


def test_config_is_immutable() -> None:
    config = ServerConfig()

    with pytest.raises(AttributeError):
        config.port = 1  # type: ignore[misc]
