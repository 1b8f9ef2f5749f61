import os
import re
from types import MappingProxyType
from typing import Any, Mapping, Optional

import pydantic
from dotenv import load_dotenv
from pydantic import AnyUrl, TypeAdapter

from rudder.errors import ConfigError
from rudder.models.config import Configuration
from rudder.schemas.options import InitOptions


INVALID_URL_MESSAGE = "data plane URL input is invalid"
INCOMPATIBLE_SSL_MESSAGE = "data plane URL and SSL options are incompatible with each other"

_SCHEME_PREFIX = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")
_HTTP_PREFIX = re.compile(r"^https?://", re.IGNORECASE)
_url_adapter = TypeAdapter(AnyUrl)


def _parse_options(raw_options: Any) -> InitOptions:
    if raw_options is None:
        raw_options = {}
    if not isinstance(raw_options, Mapping):
        raise ConfigError("initialize() options must be a mapping")
    try:
        return InitOptions.model_validate(dict(raw_options))
    except pydantic.ValidationError as exc:
        for error in exc.errors():
            if error["type"] == "missing" and "dataPlaneURL" in error["loc"]:
                raise ConfigError("initialize() requires the dataPlaneURL option") from exc
        raise ConfigError(f"initialize() options are invalid: {exc}") from exc


def required_protocol(ssl_enabled: Optional[bool]) -> str:
    return "http" if ssl_enabled is False else "https"


def normalize_data_plane_url(url: str, protocol: str) -> str:
    """Validate ``url`` against ``protocol`` and return it without its scheme.

    A URL without a scheme is read as ``https://`` before validation, so it
    only matches when ``protocol`` is ``"https"``.
    """

    if not _SCHEME_PREFIX.match(url):
        url = f"https://{url}"

    try:
        parsed = _url_adapter.validate_python(url)
    except pydantic.ValidationError as exc:
        raise ConfigError(INVALID_URL_MESSAGE) from exc
    if not parsed.host:
        raise ConfigError(INVALID_URL_MESSAGE)

    if parsed.scheme != protocol:
        raise ConfigError(INCOMPATIBLE_SSL_MESSAGE)

    return _HTTP_PREFIX.sub("", url, count=1)


def configure(secret_key: str, raw_options: Optional[Mapping[str, Any]]) -> Configuration:
    if not isinstance(secret_key, str) or not secret_key:
        raise ConfigError("initialize() requires a secret key")

    options = _parse_options(raw_options)
    protocol = required_protocol(options.ssl_enabled)
    host = normalize_data_plane_url(options.data_plane_url, protocol)
    return Configuration(
        secret_key=secret_key,
        data_plane_url=host,
        protocol=protocol,
        options=MappingProxyType(options.passthrough),
    )


def configure_from_env(environ: Optional[Mapping[str, str]] = None) -> Configuration:
    """Build a configuration from ``RUDDER_*`` environment variables.

    A ``.env`` file is loaded first when reading the real process environment.
    """

    if environ is None:
        load_dotenv()
        environ = os.environ

    raw_options = {}
    data_plane_url = environ.get("RUDDER_DATA_PLANE_URL")
    if data_plane_url:
        raw_options["dataPlaneURL"] = data_plane_url.strip()
    ssl_enabled = environ.get("RUDDER_SSL_ENABLED", "").strip()
    if ssl_enabled:
        raw_options["sslEnabled"] = ssl_enabled
    return configure(environ.get("RUDDER_WRITE_KEY", "").strip(), raw_options)
