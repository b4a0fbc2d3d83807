"""Connection configuration and URL parsing."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any
from urllib.parse import parse_qsl, quote_plus, unquote

from pymongo import common
from pymongo.errors import ConfigurationError

from mongoline.core.errors import InvalidConfigError, MissingConfigError

SCHEMES = ("mongodb", "mongodb+srv")
DEFAULT_PORT = 27017


@dataclass
class MongoConfig:
    """
    Structured connection parameters.

    ``host`` may hold a comma-separated seed list (``a:27017,b:27017``), in
    which case ``port`` is ``None`` and the ports stay inside ``host``.
    ``options`` are passed to the driver client as keyword arguments.
    """

    host: str = "localhost"
    port: int | None = DEFAULT_PORT
    database: str = ""
    username: str | None = None
    password: str | None = None
    scheme: str = "mongodb"

    # Driver keyword options (serverSelectionTimeoutMS, replicaSet, ...)
    options: dict[str, Any] = field(default_factory=dict)

    def to_connection_string(self) -> str:
        """Generate a ``mongodb://`` URI (options are not embedded)."""
        auth = ""
        if self.username:
            auth = quote_plus(self.username)
            if self.password is not None:
                auth += f":{quote_plus(self.password)}"
            auth += "@"

        hosts = self.host
        if self.port is not None and self.scheme == "mongodb":
            hosts = f"{self.host}:{self.port}"

        return f"{self.scheme}://{auth}{hosts}/{self.database}"

    def require_database(self) -> str:
        """Return the database name or raise if the URL carried none."""
        if not self.database:
            raise MissingConfigError(
                "database",
                f"No database name in connection config for {self.host}",
            )
        return self.database

    def redacted(self) -> str:
        """Connection string safe for logs."""
        if self.password is None:
            return self.to_connection_string()
        return replace(self, password="****", options={}).to_connection_string()


def _coerce_option(value: str) -> Any:
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if value.isdigit():
        return int(value)
    return value


def validate_options(options: Mapping[str, Any]) -> dict[str, Any]:
    """Check driver options the way the client would, keeping the values as given."""
    for key, value in options.items():
        try:
            common.validate(key, value)
        except (ConfigurationError, TypeError, ValueError) as e:
            raise InvalidConfigError(key, value, f"Invalid connection option {key!r}: {e}") from e
    return dict(options)


def _parse_port(raw: Any, source: Any) -> int:
    try:
        port = int(raw)
    except (TypeError, ValueError):
        raise InvalidConfigError("port", raw, f"Invalid port in {source!r}") from None
    if not 0 < port < 65536:
        raise InvalidConfigError("port", port, f"Port out of range in {source!r}")
    return port


def _parse_url_string(url: str) -> MongoConfig:
    scheme, sep, rest = url.partition("://")
    if not sep or scheme not in SCHEMES:
        raise InvalidConfigError(
            "url", url, f"Connection URL must start with mongodb:// or mongodb+srv://: {url!r}"
        )

    rest, _, query = rest.partition("?")
    netloc, _, path = rest.partition("/")
    userinfo, at, hosts = netloc.rpartition("@")
    if not hosts:
        raise InvalidConfigError("url", url, f"Connection URL has no host: {url!r}")

    username = password = None
    if at:
        user, colon, secret = userinfo.partition(":")
        username = unquote(user) or None
        password = unquote(secret) if colon else None

    port: int | None = None
    if "," in hosts or scheme == "mongodb+srv":
        host = hosts
    else:
        host, raw_port = hosts, ""
        if hosts.startswith("["):
            # IPv6 literal: [::1]:27017
            closing = hosts.find("]")
            host, raw_port = hosts[: closing + 1], hosts[closing + 2 :]
        elif ":" in hosts:
            host, _, raw_port = hosts.rpartition(":")
        port = _parse_port(raw_port, url) if raw_port else DEFAULT_PORT

    options = validate_options({key: _coerce_option(value) for key, value in parse_qsl(query)})

    return MongoConfig(
        host=host,
        port=port,
        database=unquote(path),
        username=username,
        password=password,
        scheme=scheme,
        options=options,
    )


def parse_url(config: str | Mapping[str, Any] | MongoConfig | None) -> MongoConfig:
    """
    Normalize any accepted connection config into a :class:`MongoConfig`.

    Accepts a connection URL, a mapping of parameters (optionally carrying a
    ``url`` whose values the other keys override), or an existing config,
    which is copied.

    Usage:
        parse_url("mongodb://app:secret@db:27017/shop?replicaSet=rs0")
        parse_url({"host": "db", "port": 27017, "database": "shop", "user": "app"})
    """
    if config is None:
        raise MissingConfigError("config")

    if isinstance(config, MongoConfig):
        return replace(config, options=validate_options(config.options))

    if isinstance(config, str):
        return _parse_url_string(config)

    if not isinstance(config, Mapping):
        raise InvalidConfigError("config", config, "Connection config must be a URL or a mapping")

    parsed = _parse_url_string(config["url"]) if config.get("url") else MongoConfig()

    if "host" in config:
        parsed.host = str(config["host"])
    if "port" in config:
        parsed.port = None if config["port"] is None else _parse_port(config["port"], config)
    if "database" in config:
        parsed.database = str(config["database"])
    username = config.get("username", config.get("user"))
    if username is not None:
        parsed.username = str(username)
    if config.get("password") is not None:
        parsed.password = str(config["password"])
    if config.get("options"):
        parsed.options.update(validate_options(config["options"]))

    return parsed


__all__ = [
    "MongoConfig",
    "parse_url",
    "validate_options",
    "DEFAULT_PORT",
]
