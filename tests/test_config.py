import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from rudder import config
from rudder.config import (
    INCOMPATIBLE_SSL_MESSAGE,
    INVALID_URL_MESSAGE,
    configure,
    configure_from_env,
)
from rudder.errors import ConfigError


def test_bare_host_defaults_to_https():
    result = configure("key", {"dataPlaneURL": "api.example.com/v1"})
    assert result.protocol == "https"
    assert result.data_plane_url == "api.example.com/v1"
    assert result.endpoint == "https://api.example.com/v1"


def test_explicit_https_is_stripped():
    result = configure("key", {"dataPlaneURL": "https://api.example.com", "sslEnabled": True})
    assert result.protocol == "https"
    assert result.data_plane_url == "api.example.com"


def test_explicit_http_with_ssl_disabled():
    result = configure("key", {"dataPlaneURL": "http://localhost:8080", "sslEnabled": False})
    assert result.protocol == "http"
    assert result.data_plane_url == "localhost:8080"


def test_uppercase_scheme_is_stripped():
    result = configure("key", {"dataPlaneURL": "HTTPS://api.example.com/path"})
    assert result.data_plane_url == "api.example.com/path"


def test_http_url_with_ssl_enabled_is_rejected():
    with pytest.raises(ConfigError, match=INCOMPATIBLE_SSL_MESSAGE):
        configure("key", {"dataPlaneURL": "http://api.example.com", "sslEnabled": True})


def test_https_url_with_ssl_disabled_is_rejected():
    with pytest.raises(ConfigError, match=INCOMPATIBLE_SSL_MESSAGE):
        configure("key", {"dataPlaneURL": "https://api.example.com", "sslEnabled": False})


def test_bare_host_with_ssl_disabled_is_rejected():
    # the implicit https:// never matches plain http
    with pytest.raises(ConfigError, match=INCOMPATIBLE_SSL_MESSAGE):
        configure("key", {"dataPlaneURL": "api.example.com", "sslEnabled": False})


def test_other_scheme_is_incompatible():
    with pytest.raises(ConfigError, match=INCOMPATIBLE_SSL_MESSAGE):
        configure("key", {"dataPlaneURL": "ftp://files.example.com"})


@pytest.mark.parametrize("url", ["", "https://", "https://[::1"])
def test_malformed_url_is_rejected(url):
    with pytest.raises(ConfigError, match=INVALID_URL_MESSAGE):
        configure("key", {"dataPlaneURL": url})


@pytest.mark.parametrize("options", [None, {}, {"sslEnabled": True}])
def test_missing_data_plane_url(options):
    with pytest.raises(ConfigError, match="dataPlaneURL"):
        configure("key", options)


def test_non_string_data_plane_url():
    with pytest.raises(ConfigError, match="options are invalid"):
        configure("key", {"dataPlaneURL": 42})


@pytest.mark.parametrize("secret", ["", None])
def test_secret_key_is_required(secret):
    with pytest.raises(ConfigError, match="secret key"):
        configure(secret, {"dataPlaneURL": "api.example.com"})


def test_ssl_flag_accepts_string_forms():
    result = configure("key", {"dataPlaneURL": "http://api.example.com", "sslEnabled": "false"})
    assert result.protocol == "http"
    result = configure("key", {"dataPlaneURL": "api.example.com", "sslEnabled": "true"})
    assert result.protocol == "https"


def test_unreadable_ssl_flag_is_rejected():
    with pytest.raises(ConfigError):
        configure("key", {"dataPlaneURL": "api.example.com", "sslEnabled": "maybe"})


def test_extra_options_pass_through_read_only():
    result = configure("key", {"dataPlaneURL": "api.example.com", "batch_size": 5, "debug": True})
    assert dict(result.options) == {"batch_size": 5, "debug": True}
    with pytest.raises(TypeError):
        result.options["batch_size"] = 10


def test_configure_from_env_mapping():
    result = configure_from_env(
        {
            "RUDDER_WRITE_KEY": "env-key",
            "RUDDER_DATA_PLANE_URL": " http://collector.local ",
            "RUDDER_SSL_ENABLED": "false",
        }
    )
    assert result.secret_key == "env-key"
    assert result.protocol == "http"
    assert result.data_plane_url == "collector.local"


def test_configure_from_env_requires_url():
    with pytest.raises(ConfigError, match="dataPlaneURL"):
        configure_from_env({"RUDDER_WRITE_KEY": "env-key"})


def test_configure_from_env_loads_dotenv(monkeypatch):
    calls = []
    monkeypatch.setattr(config, "load_dotenv", lambda: calls.append(True))
    monkeypatch.setenv("RUDDER_WRITE_KEY", "process-key")
    monkeypatch.setenv("RUDDER_DATA_PLANE_URL", "hosted.example.com")
    monkeypatch.delenv("RUDDER_SSL_ENABLED", raising=False)

    result = configure_from_env()

    assert calls == [True]
    assert result.secret_key == "process-key"
    assert result.endpoint == "https://hosted.example.com"
