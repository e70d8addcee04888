"""
Configuration for the feed reader.

Settings are layered: built-in defaults, then an optional JSON config file,
then environment variables, then the command line.
"""

import json
import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

from feedreader.errors import FileError, UsageError

logger = logging.getLogger(__name__)

CONFIG_ENV = "FEEDREADER_CONFIG"

ENV_SETTINGS = {
    "FEEDREADER_CERTFILE": "certfile",
    "FEEDREADER_CERTADDR": "certaddr",
    "FEEDREADER_TIMEOUT": "timeout",
    "FEEDREADER_USER_AGENT": "user_agent",
}


@dataclass
class Settings:
    """Runtime settings of one feed reader run."""

    url: Optional[str] = None
    feedfile: Optional[str] = None
    certfile: Optional[str] = None
    certaddr: Optional[str] = None
    show_time: bool = False
    show_author: bool = False
    show_url: bool = False
    check_mime: bool = False
    timeout: float = 5.0
    user_agent: str = "feedreader/1.0"
    default_scheme: str = "https://"
    verbose: bool = False

    @property
    def show_details(self) -> bool:
        """True when any optional entry field is printed."""
        return self.show_time or self.show_author or self.show_url


def load_config(config_path: str) -> Dict[str, Any]:
    """Loads configuration from a JSON file."""
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = json.load(f)
    except FileNotFoundError:
        logger.warning("Config file not found at %s. Using empty config.", config_path)
        return {}
    except OSError as e:
        raise FileError(f"{e.strerror} (path '{config_path}')") from e
    except json.JSONDecodeError as e:
        raise FileError(f"Invalid JSON in config file '{config_path}': {e}") from e

    if not isinstance(config, dict):
        raise FileError(f"Config file '{config_path}' must contain a JSON object!")
    return config


def _coerce(name: str, value: Any) -> Any:
    """Converts a raw config/env value to the type of the Settings field."""
    default = getattr(Settings, name)
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(default, float):
        try:
            timeout = float(value)
        except (TypeError, ValueError) as e:
            raise UsageError(f"Invalid value '{value}' of '{name}'!") from e
        if timeout <= 0:
            raise UsageError(f"Value of '{name}' must be positive!")
        return timeout
    return value


def build_settings(
    cli_values: Mapping[str, Any],
    environ: Optional[Mapping[str, str]] = None,
    config_path: Optional[str] = None,
) -> Settings:
    """
    Merges defaults, config file, environment and command line values.

    `cli_values` holds only the options actually given on the command line
    (None values are ignored).
    """
    environ = os.environ if environ is None else environ
    known = {field.name for field in fields(Settings)}
    values: Dict[str, Any] = {}

    config_path = config_path or environ.get(CONFIG_ENV)
    if config_path:
        for name, value in load_config(config_path).items():
            if name not in known:
                logger.warning("Unknown option '%s' in config file '%s' is ignored.", name, config_path)
                continue
            values[name] = _coerce(name, value)

    for env_name, name in ENV_SETTINGS.items():
        if environ.get(env_name):
            values[name] = _coerce(name, environ[env_name])

    for name, value in cli_values.items():
        if name in known and value is not None:
            values[name] = _coerce(name, value)

    return Settings(**values)
