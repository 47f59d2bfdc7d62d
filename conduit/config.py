"""
Configuration for conduit.

Loads settings from environment variables with sensible defaults, then
layers the YAML config file and command-line overrides on top.
All persistent data is stored in ~/.conduit/
"""

import dataclasses
import logging
import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

from .log import LEVEL_NAMES
from .utils import app_data_dir, file_exists

load_dotenv()

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.yaml"
LOG_FILE_NAME = "logfile.log"

# Used when no lnd options are configured at all
DEFAULT_LND_ARGS = ("--bitcoin.simnet", "--bitcoin.active", "--bitcoin.node=btcd")


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Config:
    """Conduit configuration."""

    # Paths
    conduit_dir: Path = Path(os.environ.get("CONDUIT_DIR", str(app_data_dir("conduit"))))
    default_dir: bool = "CONDUIT_DIR" not in os.environ

    # Logging
    console_output: bool = _env_bool("CONDUIT_CONSOLE_OUTPUT", "true")
    log_level: str = os.environ.get("CONDUIT_LOG_LEVEL", "INFO")
    log_max_bytes: int = int(os.environ.get("LOG_MAX_BYTES", str(10 * 1024 * 1024)))  # 10MB
    log_backup_count: int = int(os.environ.get("LOG_BACKUP_COUNT", "5"))

    # Child process
    lnd_binary: str = os.environ.get("LND_BINARY", "lnd")
    lnd_show_version: bool = False
    lnd_options: dict = field(default_factory=dict)  # flag -> value, passed through as --flag=value
    lnd_extra_args: tuple = ()

    # Shutdown
    shutdown_timeout: float = float(os.environ.get("SHUTDOWN_TIMEOUT", "30"))
    poll_interval: float = 0.5

    @property
    def config_file(self) -> Path:
        return Path(self.conduit_dir) / CONFIG_FILE_NAME

    @property
    def log_file(self) -> Path:
        return Path(self.conduit_dir) / LOG_FILE_NAME

    def ensure_dirs(self):
        """Create the data directory if it does not exist yet."""
        Path(self.conduit_dir).mkdir(parents=True, exist_ok=True)

    def lnd_args(self) -> list[str]:
        """Build the finished argument list handed to the lnd process."""
        if not self.lnd_options and not self.lnd_extra_args:
            return list(DEFAULT_LND_ARGS)

        args = []
        for flag, value in self.lnd_options.items():
            name = f"--{flag.lstrip('-')}"
            if value is True:
                args.append(name)
            elif value is False or value is None:
                continue
            elif isinstance(value, (list, tuple)):
                args.extend(f"{name}={item}" for item in value)
            else:
                args.append(f"{name}={value}")
        args.extend(self.lnd_extra_args)
        return args


def _read_yaml(path: Path) -> dict:
    """Read a YAML config file. Problems are logged and yield an empty dict."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not read config file {path}, using defaults: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Config file {path} is not a mapping, using defaults")
        return {}
    return data


def _coerce(expected: type, value):
    """Check a config file value against its field type, converting where safe.

    Raises TypeError when the value cannot stand in for the field.
    """
    if expected is Path and isinstance(value, str):
        return Path(value).expanduser()
    if expected is tuple:
        if isinstance(value, str):
            return tuple(shlex.split(value))
        if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
            return tuple(value)
    elif expected is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    elif expected is int and isinstance(value, bool):
        pass
    elif isinstance(value, expected):
        return value
    raise TypeError(f"expected {expected.__name__}, got {type(value).__name__}")


def _from_yaml(data: dict) -> dict:
    """Turn raw YAML data into Config field values.

    Entries of the wrong type are logged and left at their defaults.
    """
    types = {f.name: f.type for f in dataclasses.fields(Config)}
    values = {}
    for key, value in data.items():
        if key == "lnd":
            key = "lnd_options"
        if key not in types:
            logger.warning(f"Ignoring unknown config key '{key}'")
            continue
        try:
            values[key] = _coerce(types[key], value)
        except TypeError as e:
            logger.warning(f"Ignoring config key '{key}': {e}")

    level = values.get("log_level")
    if level is not None and level.upper() not in LEVEL_NAMES:
        logger.warning(f"Ignoring config key 'log_level': unknown level {level}")
        del values["log_level"]
    return values


def load_config(conduit_dir: str | Path | None = None, config_file: str | Path | None = None, **overrides) -> Config:
    """Build the configuration: defaults, then config.yaml, then overrides.

    Overrides whose value is None are ignored so unset command-line options
    never clobber the file.
    """
    base = Config()
    if conduit_dir is not None:
        base = dataclasses.replace(base, conduit_dir=Path(conduit_dir).expanduser(), default_dir=False)

    path = Path(config_file).expanduser() if config_file else base.config_file
    values = {}
    if file_exists(path):
        values = _from_yaml(_read_yaml(path))
    elif config_file:
        logger.warning(f"Config file {path} not found, using defaults")

    # an explicit directory on the command line wins over the file
    if conduit_dir is not None:
        values.pop("conduit_dir", None)
    elif "conduit_dir" in values:
        values["default_dir"] = False

    values.update({key: value for key, value in overrides.items() if value is not None})
    if "lnd_extra_args" in values:
        values["lnd_extra_args"] = _coerce(tuple, values["lnd_extra_args"])
    return dataclasses.replace(base, **values)
