"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file
- Provides typed access to all henix settings
- Falls back to sensible defaults when config file is absent
- Environment variables override file-based config

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Loaded once at process start and passed down; nothing reads the
  environment after that
- Nested config sections map to sub-dataclasses
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import dataclasses
import json
import logging
import os

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SSHConfig:
    """SSH connection settings shared by every node."""
    user: str = "root"
    connect_timeout: int = 30


@dataclass(frozen=True)
class DeployConfig:
    """Deployment settings."""
    cfg_dir: str = ""
    staging_dir: str = "/etc/henix"
    # 0 disables the per-node deadline
    node_timeout_seconds: int = 0


@dataclass(frozen=True)
class HenixConfig:
    """Root configuration for the henix application."""
    ssh: SSHConfig = field(default_factory=SSHConfig)
    deploy: DeployConfig = field(default_factory=DeployConfig)
    log_level: str = "INFO"
    log_json: bool = False


_TOP_LEVEL_FIELDS = {"log_level", "log_json"}


def _env_override(data: dict, environ: dict, prefix: str = "HENIX") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern HENIX_SECTION_KEY, or HENIX_KEY
    for top-level keys. For example: HENIX_SSH_USER=deploy,
    HENIX_DEPLOY_STAGING_DIR=/var/lib/henix, HENIX_LOG_LEVEL=debug
    """
    for key, value in environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        name = key[len(prefix) + 1:].lower()
        if name in _TOP_LEVEL_FIELDS:
            data[name] = value
            continue
        parts = name.split("_", 1)
        if len(parts) == 2:
            section, field_name = parts
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][field_name] = value
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


def _coerce(type_name: str, value):
    if not isinstance(value, str):
        return value
    if type_name == "int":
        return int(value)
    if type_name == "bool":
        return value.lower() in ("true", "1", "yes")
    return value


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    if not isinstance(data, dict):
        return cls()
    valid_fields = {f.name: f for f in dataclasses.fields(cls)}
    filtered = {
        k: _coerce(valid_fields[k].type, v)
        for k, v in data.items()
        if k in valid_fields
    }
    return cls(**filtered)


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "HENIX",
    environ: Optional[dict] = None,
) -> HenixConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (HENIX_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to henix.json in CWD.
        env_prefix: Environment variable prefix. Defaults to HENIX.
        environ: Environment mapping. Defaults to os.environ.
    """
    config_path = Path(path) if path else Path("henix.json")
    data = _parse_config_file(config_path)
    data = _env_override(data, dict(os.environ if environ is None else environ), env_prefix)

    return HenixConfig(
        ssh=_build_sub_config(SSHConfig, data.get("ssh", {})),
        deploy=_build_sub_config(DeployConfig, data.get("deploy", {})),
        log_level=str(data.get("log_level", "INFO")),
        log_json=_coerce("bool", data.get("log_json", False)),
    )
