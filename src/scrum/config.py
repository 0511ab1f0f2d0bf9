"""
Configuration file handling.

Settings are read from a YAML file (``~/.config/scrum/scrum.yaml`` by default, or
$SCRUM_CONFIG) and then overridden by command-line options. Example:

    general:
      country: ca
      use-pager: false
    scrum:
      username: $USER
    store:
      root: ~/scrums
    holidays:
      "2018-07-02": "ca: Canada Day, observed"
    highlight:
      blocked: red bold
      review~: yellow
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

PROGNAME = "scrum"
CONFIG_ENV_VAR = "SCRUM_CONFIG"
DEFAULT_CONFIG_PATH = Path("~") / ".config" / PROGNAME / f"{PROGNAME}.yaml"
DEFAULT_STORE_ROOT = Path("~") / ".local" / "share" / PROGNAME


@dataclass(frozen=True)
class Settings:
    country: str = "us"
    use_pager: bool = True
    utc: bool = False
    log_level: str = "info"
    log_format: str = "auto"
    use_color: bool = field(default_factory=lambda: sys.stdout.isatty())
    username: str = "$USER"
    store_root: str = str(DEFAULT_STORE_ROOT)
    holidays: Optional[Dict[Any, Any]] = None
    highlight: Dict[str, Any] = field(default_factory=dict)

    def override(self, **changes: Any) -> "Settings":
        """Return a copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def resolve_username(self, environ: Optional[Mapping[str, str]] = None) -> str:
        env = os.environ if environ is None else environ
        username = self.username
        if username == "$USER":
            username = env.get("USER", "")
            if not username:
                raise ConfigError("user requires a flag (or the USER environment variable)")
        if not username:
            raise ConfigError("user can not be an empty string")
        return username


def default_config_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if environ is None else environ
    if env.get(CONFIG_ENV_VAR):
        return Path(env[CONFIG_ENV_VAR]).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"config section {name!r} must be a mapping")
    return value


def settings_from_dict(data: Mapping[str, Any]) -> Settings:
    general = _section(data, "general")
    log = _section(data, "log")
    scrum = _section(data, "scrum")
    store = _section(data, "store")

    holidays = data.get("holidays")
    if holidays is not None and not isinstance(holidays, Mapping):
        raise ConfigError("config section 'holidays' must be a mapping")
    highlight = _section(data, "highlight")

    return Settings().override(
        country=general.get("country"),
        use_pager=general.get("use-pager"),
        utc=general.get("utc"),
        log_level=log.get("level"),
        log_format=log.get("format"),
        use_color=log.get("use-color"),
        username=scrum.get("username"),
        store_root=store.get("root"),
        holidays=dict(holidays) if holidays is not None else None,
        highlight=dict(highlight),
    )


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from a YAML file.

    A missing file is not an error (defaults are returned), an unreadable file or invalid
    YAML raises ConfigError.
    """
    p = Path(path).expanduser() if path is not None else default_config_path()
    if not p.exists():
        logger.debug("config file not found: %s", p)
        return Settings()

    try:
        with open(p, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {p}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {p}: {e}") from e

    if data is None:
        return Settings()
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {p} must contain a YAML mapping")

    logger.debug("loaded config file %s", p)
    return settings_from_dict(data)
