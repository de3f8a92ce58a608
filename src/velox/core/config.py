"""Configuration management for velox.

Handles TOML config files, environment variables, named connection
profiles, and configuration precedence resolution.

Precedence order (highest to lowest):
1. CLI flags (--host, --port, etc.)
2. --dsn flag (parsed into components)
3. Environment variables (VELOX_ENGINE, VELOX_HOST, VELOX_PORT, ...)
4. Named profile (--profile or VELOX_PROFILE env var)
5. Config file defaults
6. Built-in defaults
"""

from __future__ import annotations

import os
import tomllib
from enum import StrEnum
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, unquote, urlparse

from pydantic import BaseModel, ValidationError, field_validator, model_validator

from velox.core.error_codes import ErrorCode
from velox.core.exceptions import ConfigError

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "velox" / "config.toml"


class Engine(StrEnum):
    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLITE = "sqlite"


_DEFAULT_PORTS: dict[Engine, int | None] = {
    Engine.POSTGRES: 5432,
    Engine.MYSQL: 3306,
    Engine.SQLITE: None,
}


def default_port(engine: Engine) -> int | None:
    return _DEFAULT_PORTS[engine]


_ENV_VARS: dict[str, str] = {
    "VELOX_ENGINE": "engine",
    "VELOX_HOST": "host",
    "VELOX_PORT": "port",
    "VELOX_DATABASE": "dbname",
    "VELOX_USER": "user",
    "VELOX_PASSWORD": "password",  # pragma: allowlist secret
}

_PROFILE_DEFAULTS: dict[str, Any] = {
    "engine": Engine.POSTGRES,
    "host": None,
    "port": None,
    "dbname": None,
    "user": None,
    "password": None,
    "connect_timeout": 10,
    "application_name": "velox",
}

_DSN_SCHEMES: dict[str, Engine] = {
    "postgresql": Engine.POSTGRES,
    "postgres": Engine.POSTGRES,
    "mysql": Engine.MYSQL,
    "sqlite": Engine.SQLITE,
}


def parse_dsn(dsn: str) -> dict[str, Any]:
    """Supports postgresql://, postgres://, mysql:// and sqlite:///path."""
    parsed = urlparse(dsn)
    if parsed.scheme not in _DSN_SCHEMES:
        msg = (
            f"Invalid DSN scheme: '{parsed.scheme}'. "
            f"Expected one of: {', '.join(sorted(_DSN_SCHEMES))}"
        )
        raise ConfigError(msg)

    engine = _DSN_SCHEMES[parsed.scheme]
    result: dict[str, Any] = {"engine": engine}
    if engine is Engine.SQLITE:
        # sqlite:///relative.db, sqlite:////abs/path.db, sqlite:///:memory:
        path = parsed.path[1:] if parsed.path.startswith("/") else parsed.path
        result["dbname"] = unquote(path) or ":memory:"
        return result

    if parsed.hostname:
        result["host"] = parsed.hostname
    if parsed.port:
        result["port"] = parsed.port
    if parsed.path and parsed.path.strip("/"):
        result["dbname"] = parsed.path.strip("/")
    if parsed.username:
        result["user"] = unquote(parsed.username)
    if parsed.password:
        result["password"] = unquote(parsed.password)
    query_params = parse_qs(parsed.query)
    if "connect_timeout" in query_params:
        result["connect_timeout"] = int(query_params["connect_timeout"][0])
    if "application_name" in query_params:
        result["application_name"] = query_params["application_name"][0]
    return result


class ReportingConfig(BaseModel):
    """How errors are reported at the CLI boundary."""

    stderr: bool = True
    json_output: bool = False
    stacktrace: bool = False


class ConnectionProfile(BaseModel):
    dsn: str | None = None
    engine: Engine = Engine.POSTGRES
    host: str | None = None
    port: int | None = None
    dbname: str | None = None
    user: str | None = None
    password: str | None = None
    connect_timeout: int = 10
    application_name: str = "velox"

    @model_validator(mode="before")
    @classmethod
    def parse_dsn_into_components(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("dsn"):
            dsn_fields = parse_dsn(data["dsn"])
            for key, value in dsn_fields.items():
                if key not in data:
                    data[key] = value
        return data

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int | None) -> int | None:
        if v is not None and not (1 <= v <= 65535):
            msg = f"Invalid port: {v}. Must be 1-65535"
            raise ValueError(msg)
        return v


class AppConfig(BaseModel):
    default_timeout: float = 30.0
    default_format: str = "table"
    default_profile: str | None = None
    sentry_dsn: str | None = None
    reporting: ReportingConfig = ReportingConfig()
    profiles: dict[str, ConnectionProfile] = {}


class ResolvedConfig(BaseModel):
    engine: Engine = Engine.POSTGRES
    host: str | None = None
    port: int | None = None
    dbname: str | None = None
    user: str | None = None
    password: str | None = None
    connect_timeout: int = 10
    application_name: str = "velox"
    default_timeout: float = 30.0
    default_format: str = "table"
    active_profile: str | None = None
    sources: dict[str, str] = {}

    @property
    def effective_port(self) -> int | None:
        return self.port if self.port is not None else default_port(self.engine)

    def describe(self) -> str:
        """Short human-readable target, never including the password."""
        if self.engine is Engine.SQLITE:
            return f"sqlite:{self.dbname}"
        return f"{self.engine.value}://{self.host}:{self.effective_port}/{self.dbname}"


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from TOML file.

    Returns default AppConfig if file doesn't exist.
    Raises ConfigError on malformed TOML or invalid config.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        return AppConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Malformed TOML in {config_path}: {e}"
        raise ConfigError(msg) from e

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid configuration in {config_path}: {e}"
        raise ConfigError(msg) from e


def resolve_config(
    config: AppConfig,
    profile_name: str | None = None,
    dsn: str | None = None,
    **cli_overrides: Any,
) -> ResolvedConfig:
    """Resolve configuration using precedence chain.

    CLI > DSN > env > profile > config defaults > built-in defaults.
    """
    sources: dict[str, str] = {}
    resolved: dict[str, Any] = {}

    # Layer 1: Built-in defaults
    resolved.update(_PROFILE_DEFAULTS)
    resolved["default_timeout"] = 30.0
    resolved["default_format"] = "table"
    for key in resolved:
        sources[key] = "default"

    # Layer 2: Config file global defaults
    if config.default_timeout != 30.0:
        resolved["default_timeout"] = config.default_timeout
        sources["default_timeout"] = "config"
    if config.default_format != "table":
        resolved["default_format"] = config.default_format
        sources["default_format"] = "config"

    # Layer 3: Named profile
    effective_profile = profile_name
    if not effective_profile:
        effective_profile = os.environ.get("VELOX_PROFILE")
    if not effective_profile:
        effective_profile = config.default_profile

    if effective_profile:
        if effective_profile not in config.profiles:
            available = (
                ", ".join(sorted(config.profiles.keys())) if config.profiles else "none"
            )
            msg = f"Unknown profile: '{effective_profile}'. Available profiles: {available}"
            raise ConfigError(msg)
        profile = config.profiles[effective_profile]
        for key in profile.model_fields_set | _dsn_fields(profile):
            if key == "dsn":
                continue
            if key in resolved:
                resolved[key] = getattr(profile, key)
                sources[key] = f"profile: {effective_profile}"

    # Layer 4: Environment variables
    for env_var, field_name in _ENV_VARS.items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        if field_name == "port":
            try:
                resolved[field_name] = int(value)
            except ValueError:
                msg = f"Invalid {env_var} value: '{value}'. Must be an integer"
                raise ConfigError(msg) from None
        elif field_name == "engine":
            resolved[field_name] = _parse_engine(value, env_var)
        else:
            resolved[field_name] = value
        sources[field_name] = f"env: {env_var}"

    # Layer 5: DSN flag
    if dsn:
        dsn_fields = parse_dsn(dsn)
        for key, value in dsn_fields.items():
            if key in resolved:
                resolved[key] = value
                sources[key] = "dsn"

    # Layer 6: CLI flags (highest priority)
    cli_to_field = {
        "engine": "engine",
        "host": "host",
        "port": "port",
        "database": "dbname",
        "user": "user",
        "password": "password",  # pragma: allowlist secret
        "timeout": "default_timeout",
    }
    for cli_name, field_name in cli_to_field.items():
        value = cli_overrides.get(cli_name)
        if value is not None:
            if field_name == "engine":
                value = _parse_engine(value, "--engine")
            resolved[field_name] = value
            sources[field_name] = f"cli: --{cli_name}"

    resolved["active_profile"] = effective_profile
    resolved["sources"] = sources
    return ResolvedConfig(**resolved)


def _dsn_fields(profile: ConnectionProfile) -> set[str]:
    if not profile.dsn:
        return set()
    return set(parse_dsn(profile.dsn))


def _parse_engine(value: str, origin: str) -> Engine:
    try:
        return Engine(value.lower())
    except ValueError:
        valid = ", ".join(e.value for e in Engine)
        msg = f"Invalid engine from {origin}: '{value}'. Must be one of: {valid}"
        raise ConfigError(msg, code=ErrorCode.UNSUPPORTED_ENGINE) from None
