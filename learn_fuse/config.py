"""
Configuration management for learn-fuse.

Settings are read from ``$XDG_CONFIG_HOME/learn-fuse/config.json`` when it
exists; command-line flags take precedence over the file, and anything
left unset falls back to the defaults below.

Example config.json:
    {
      "base_url": "https://learn.tsinghua.edu.cn",
      "timeout": 30,
      "debug": false
    }
"""

import fcntl
import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from .urls import PREFIX, USER_AGENT

log = logging.getLogger(__name__)


@dataclass
class FuseConfig:
    """Settings for one mount."""
    base_url: str = PREFIX
    timeout: float = 30.0
    user_agent: str = USER_AGENT
    fsname: str = "learn-fuse"
    debug: bool = False


def get_config_dir() -> Path:
    """Get learn-fuse config directory (~/.config/learn-fuse/)."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(xdg_config) / "learn-fuse"


def get_config_path() -> Path:
    return get_config_dir() / "config.json"


def read_config_file(path: Optional[Path] = None) -> Optional[dict]:
    """Read config.json. Returns None if it is missing or unreadable."""
    path = path or get_config_path()
    if not path.exists():
        return None
    try:
        with open(path, "r") as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            try:
                data = json.load(f)
            finally:
                fcntl.flock(f, fcntl.LOCK_UN)
    except (json.JSONDecodeError, OSError) as e:
        log.warning(f"Could not read config at {path}: {e}")
        return None
    if not isinstance(data, dict):
        log.warning(f"Ignoring config at {path}: expected a JSON object")
        return None
    return data


def load_config(path: Optional[Path] = None, **overrides) -> FuseConfig:
    """Build the effective config: defaults < config file < overrides.

    Overrides that are None are treated as "not given". Unknown keys in the
    file are ignored with a warning.
    """
    known = {f.name for f in fields(FuseConfig)}
    values = {}

    data = read_config_file(path) or {}
    for key, value in data.items():
        if key not in known:
            log.warning(f"Ignoring unknown config key: {key}")
            continue
        values[key] = value

    for key, value in overrides.items():
        if key in known and value is not None:
            values[key] = value

    config = FuseConfig(**values)
    config.base_url = config.base_url.rstrip("/")
    config.timeout = float(config.timeout)
    return config
