"""
Mirror Settings

Type-safe settings for connecting to ZooKeeper and placing the mirrored
document. Sourced from a standalone descriptor file or from a nested
section of a host application's configuration.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError

# Section name used when the settings live inside a host configuration
DEFAULT_SECTION = "zkConfig"
# Synthetic top-level key wrapping the materialized subtree
DEFAULT_ROOT_KEY = "configuration"

# File key -> (attribute, environment override)
SETTING_KEYS: dict[str, tuple[str, str]] = {
    "address": ("address", "ZKMIRROR_ADDRESS"),
    "scheme": ("scheme", "ZKMIRROR_SCHEME"),
    "auth": ("auth", "ZKMIRROR_AUTH"),
    "zkrootpath": ("root_path", "ZKMIRROR_ROOT_PATH"),
    "filepath": ("file_path", "ZKMIRROR_FILE_PATH"),
}


@dataclass
class MirrorSettings:
    """Connection and output settings for one mirrored subtree"""
    address: str
    root_path: str
    file_path: str
    scheme: str = ""
    auth: str = ""
    connect_timeout: float = 1.0  # seconds
    rearm_delay: float = 1.0  # seconds between failed watch attempts
    root_key: str = DEFAULT_ROOT_KEY

    @property
    def hosts(self) -> str:
        """Host list in the comma-separated form kazoo expects"""
        return ",".join(h.strip() for h in self.address.split(",") if h.strip())

    @property
    def output_path(self) -> Path:
        """Document target: the configured base path plus .json"""
        return Path(f"{self.file_path}.json")


def _coerce_address(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


def load_mirror_settings(data: dict) -> MirrorSettings:
    """Load MirrorSettings from a dictionary, applying environment overrides"""
    values: dict[str, Any] = {}
    for file_key, (attr, env_var) in SETTING_KEYS.items():
        raw = os.environ.get(env_var)
        if raw is None:
            raw = data.get(file_key, data.get(attr))
        values[attr] = "" if raw is None else raw

    values["address"] = _coerce_address(values["address"])

    missing = [
        key for key, (attr, _) in SETTING_KEYS.items()
        if key not in ("scheme", "auth") and not str(values[attr]).strip()
    ]
    if missing:
        raise ConfigError(f"Missing required settings: {', '.join(missing)}")

    try:
        connect_timeout = float(data.get("connect_timeout", 1.0))
        rearm_delay = float(data.get("rearm_delay", 1.0))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid timing setting: {e}") from e

    return MirrorSettings(
        address=values["address"],
        root_path=str(values["root_path"]),
        file_path=str(values["file_path"]),
        scheme=str(values["scheme"]),
        auth=str(values["auth"]),
        connect_timeout=connect_timeout,
        rearm_delay=rearm_delay,
        root_key=str(data.get("root_key", DEFAULT_ROOT_KEY)),
    )


def read_config_file(path: str | Path) -> dict:
    """Read a YAML (or JSON) file into a dictionary"""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Error parsing config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} does not contain a mapping")
    return data


def load_descriptor(path: str | Path) -> MirrorSettings:
    """Load settings from a standalone descriptor file"""
    return load_mirror_settings(read_config_file(path))


def load_embedded(host_config: dict, section: str = DEFAULT_SECTION) -> MirrorSettings:
    """Load settings from a nested section of a host configuration"""
    data = host_config.get(section)
    if not isinstance(data, dict):
        raise ConfigError(f"Host configuration has no '{section}' section")
    return load_mirror_settings(data)
