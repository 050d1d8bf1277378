"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file and the environment
- Provides typed, immutable access to every rollwatch setting
- Falls back to sensible defaults when the config file is absent
- Loaded once at the edge and threaded explicitly into each component

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses
- ROLLWATCH_SECTION_KEY variables override file values
- The established DEPLOY_WAIT_TIMEOUT / REPLICA_WAIT_TIMEOUT /
  SERVICE_READY_TIMEOUT / KUBE_NAMESPACE variables override everything
"""

from __future__ import annotations
import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional
import json
import logging
import os

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClusterConfig:
    """kubectl invocation settings."""
    kubectl: str = "kubectl"
    namespace: str = ""
    context: str = ""


@dataclass(frozen=True)
class TimeoutConfig:
    """Per-stage deadlines, in seconds. Zero disables the deadline."""
    deploy_wait: float = 120.0
    replica_wait: float = 120.0
    service_ready: float = 120.0
    poll_interval: float = 1.0

    def __post_init__(self) -> None:
        for f in dataclasses.fields(self):
            if getattr(self, f.name) < 0:
                raise ValueError(f"{f.name} cannot be negative")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")


@dataclass(frozen=True)
class TelemetryConfig:
    """OpenTelemetry configuration."""
    endpoint: str = ""
    insecure: bool = False
    service_name: str = "rollwatch"


@dataclass(frozen=True)
class RollwatchConfig:
    """Root configuration for the rollwatch application."""
    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    log_level: str = "INFO"


# Variable name -> (section, field)
LEGACY_ENV_VARS: dict[str, tuple[str, str]] = {
    "DEPLOY_WAIT_TIMEOUT": ("timeouts", "deploy_wait"),
    "REPLICA_WAIT_TIMEOUT": ("timeouts", "replica_wait"),
    "SERVICE_READY_TIMEOUT": ("timeouts", "service_ready"),
    "KUBE_NAMESPACE": ("cluster", "namespace"),
}


def _env_override(
    data: dict, environ: Mapping[str, str], prefix: str = "ROLLWATCH"
) -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern ROLLWATCH_SECTION_KEY.
    For example: ROLLWATCH_TIMEOUTS_REPLICA_WAIT=300, ROLLWATCH_LOG_LEVEL=DEBUG
    """
    for key, value in environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        rest = key[len(prefix) + 1:].lower()
        if rest == "log_level":
            data["log_level"] = value
            continue
        parts = rest.split("_", 1)
        if len(parts) == 2:
            section, field_name = parts
            _section(data, section)[field_name] = value

    for key, (section, field_name) in LEGACY_ENV_VARS.items():
        if environ.get(key):
            _section(data, section)[field_name] = environ[key]
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict when missing or unparseable."""
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"config file {path} must contain a JSON object")
    return data


def _section(data: dict, name: str) -> dict:
    """Return the named config section, creating it when absent."""
    section = data.setdefault(name, {})
    if not isinstance(section, dict):
        raise ValueError(f"config section '{name}' must be an object")
    return section


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}

    # Convert strings (and JSON ints) to the declared field type
    for f in dataclasses.fields(cls):
        if f.name not in filtered:
            continue
        val = filtered[f.name]
        if f.type == "float" and isinstance(val, (str, int)):
            try:
                filtered[f.name] = float(val)
            except ValueError:
                raise ValueError(
                    f"{f.name} must be a number of seconds, got {val!r}"
                ) from None
        elif f.type == "bool" and isinstance(val, str):
            filtered[f.name] = val.lower() in ("true", "1", "yes")

    return cls(**filtered)


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "ROLLWATCH",
    environ: Optional[Mapping[str, str]] = None,
) -> RollwatchConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. DEPLOY_WAIT_TIMEOUT, REPLICA_WAIT_TIMEOUT, SERVICE_READY_TIMEOUT,
       KUBE_NAMESPACE
    2. Environment variables (ROLLWATCH_SECTION_KEY)
    3. Config file values
    4. Defaults

    Args:
        path: Path to config file (JSON). Defaults to rollwatch.json in CWD.
        env_prefix: Environment variable prefix. Defaults to ROLLWATCH.
        environ: Environment mapping. Defaults to os.environ.
    """
    config_path = Path(path) if path else Path("rollwatch.json")
    data = _parse_config_file(config_path)
    data = _env_override(data, os.environ if environ is None else environ, env_prefix)

    return RollwatchConfig(
        cluster=_build_sub_config(ClusterConfig, _section(data, "cluster")),
        timeouts=_build_sub_config(TimeoutConfig, _section(data, "timeouts")),
        telemetry=_build_sub_config(TelemetryConfig, _section(data, "telemetry")),
        log_level=data.get("log_level", "INFO"),
    )
