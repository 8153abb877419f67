"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file
- Provides typed access to provider, SSH and time-budget settings
- Falls back to sensible defaults when config file is absent
- Environment variables override file-based config

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses
- Time budgets translate into the application's ExecutionPolicy
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import dataclasses
import json
import logging
import os

from stratus.application.dtos.compute_dtos import ExecutionPolicy
from stratus.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderConfig:
    """Which backend to talk to and the account to use."""
    name: str = "aws"
    identity: str = ""
    credential: str = ""


@dataclass(frozen=True)
class SshConfig:
    """Login used for nodes whose provider does not report one."""
    user: str = "root"
    private_key_file: str = ""
    port: int = 22
    connect_timeout: int = 30


@dataclass(frozen=True)
class PollingConfig:
    socket_max_wait: float = 60
    socket_period: float = 1
    node_running_timeout: float = 600
    node_poll_period: float = 2


@dataclass(frozen=True)
class VerificationConfig:
    attempts: int = 5
    backoff_seconds: float = 10


@dataclass(frozen=True)
class CatalogConfig:
    cache_ttl_seconds: float = 60


@dataclass(frozen=True)
class StratusConfig:
    """Root configuration for stratus."""
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    ssh: SshConfig = field(default_factory=SshConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    verification: VerificationConfig = field(default_factory=VerificationConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    max_concurrency: int = 10
    log_level: str = "WARNING"

    def execution_policy(self) -> ExecutionPolicy:
        return ExecutionPolicy(
            socket_max_wait=self.polling.socket_max_wait,
            socket_period=self.polling.socket_period,
            node_running_timeout=self.polling.node_running_timeout,
            node_poll_period=self.polling.node_poll_period,
            verify_attempts=self.verification.attempts,
            verify_backoff=self.verification.backoff_seconds,
            catalog_cache_ttl=self.catalog.cache_ttl_seconds,
            max_concurrency=self.max_concurrency,
        )


_SECTIONS = {
    "provider": ProviderConfig,
    "ssh": SshConfig,
    "polling": PollingConfig,
    "verification": VerificationConfig,
    "catalog": CatalogConfig,
}


def _env_override(data: dict, prefix: str = "STRATUS") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern STRATUS_SECTION_KEY.
    For example: STRATUS_PROVIDER_IDENTITY=AKIA..., STRATUS_SSH_PORT=2222,
    STRATUS_LOG_LEVEL=DEBUG
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        name = key[len(prefix) + 1:].lower()
        parts = name.split("_", 1)
        if len(parts) == 2 and parts[0] in _SECTIONS:
            section, field_name = parts
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][field_name] = value
        else:
            data[name] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            return json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}


def _coerce(value, type_name: str):
    if not isinstance(value, str):
        return value
    try:
        if type_name == "int":
            return int(value)
        if type_name == "float":
            return float(value)
    except ValueError as e:
        raise ConfigurationError(f"expected {type_name}, got {value!r}") from e
    if type_name == "bool":
        return value.lower() in ("true", "1", "yes")
    return value


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    fields = {f.name: f for f in dataclasses.fields(cls)}
    filtered = {
        k: _coerce(v, fields[k].type) for k, v in data.items() if k in fields
    }
    return cls(**filtered)


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "STRATUS",
) -> StratusConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (STRATUS_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to stratus.json in CWD.
        env_prefix: Environment variable prefix. Defaults to STRATUS.
    """
    config_path = Path(path) if path else Path("stratus.json")
    data = _parse_config_file(config_path)
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {config_path} must hold a JSON object")
    data = _env_override(data, env_prefix)

    sections = {}
    for name, cls in _SECTIONS.items():
        section = data.get(name) or {}
        if not isinstance(section, dict):
            raise ConfigurationError(
                f"config section {name!r} must be an object, got {type(section).__name__}"
            )
        sections[name] = _build_sub_config(cls, section)
    return StratusConfig(
        **sections,
        max_concurrency=_coerce(data.get("max_concurrency", 10), "int"),
        log_level=data.get("log_level", "WARNING"),
    )


def load_key_pair(path: str) -> tuple[str, Optional[str]]:
    """Read a private key file and, when present, its `.pub` companion.

    Raises:
        ConfigurationError: if the private key is missing or empty.
    """
    key_path = Path(path).expanduser()
    try:
        private_key = key_path.read_text()
    except OSError as e:
        raise ConfigurationError(f"cannot read private key {key_path}: {e}") from e
    if not private_key.strip():
        raise ConfigurationError(f"private key {key_path} is empty")

    public_path = key_path.with_name(key_path.name + ".pub")
    public_key = public_path.read_text() if public_path.exists() else None
    return private_key, public_key
