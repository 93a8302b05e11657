"""
Configuration for the hours logging tool.

The configuration is a small YAML file in the user's config directory
holding the backend URL, the default engagement, the timezone used for
date arithmetic, and output preferences.
"""

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import os

import yaml

from .errors import VMSHoursError


DEFAULT_BASE_URL = "https://prowand.pro-unlimited.com"
DEFAULT_TIMEOUT = 45  # seconds
CONFIG_DIR_NAME = "magnit-vms-cli"
CONFIG_FILE_NAME = "config.yaml"
CONFIG_PATH_ENV = "VMS_HOURS_CONFIG"


class ConfigError(VMSHoursError):
    """Raised when the configuration cannot be read, written or used."""
    pass


@dataclass
class OutputConfig:
    """
    Output preferences.

    Attributes:
        json_default: Emit JSON even without --json
    """
    json_default: bool = False


@dataclass
class Config:
    """
    Application configuration.

    Attributes:
        base_url: Backend base URL
        default_engagement_id: Engagement used when none is given (0 = unset)
        timezone: IANA timezone for date handling ("" = system local)
        timeout: HTTP request timeout (seconds)
        output: Output preferences
    """
    base_url: str = DEFAULT_BASE_URL
    default_engagement_id: int = 0
    timezone: str = ""
    timeout: int = DEFAULT_TIMEOUT
    output: OutputConfig = field(default_factory=OutputConfig)

    def validate(self):
        """
        Validate configuration.

        Raises:
            ConfigError: If configuration is invalid
        """
        if self.default_engagement_id < 0:
            raise ConfigError(
                f"default_engagement_id must be >= 0, got: {self.default_engagement_id}"
            )

        if self.timeout <= 0:
            raise ConfigError(f"timeout must be > 0, got: {self.timeout}")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'base_url': self.base_url or DEFAULT_BASE_URL}
        if self.default_engagement_id:
            data['default_engagement_id'] = self.default_engagement_id
        if self.timezone:
            data['timezone'] = self.timezone
        if self.timeout != DEFAULT_TIMEOUT:
            data['timeout'] = self.timeout
        if self.output.json_default:
            data['output'] = {'json_default': True}
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        output = data.get('output') or {}
        if not isinstance(output, dict):
            raise ConfigError("config 'output' must be a mapping")

        try:
            cfg = cls(
                base_url=str(data.get('base_url') or DEFAULT_BASE_URL),
                default_engagement_id=int(data.get('default_engagement_id') or 0),
                timezone=str(data.get('timezone') or ""),
                timeout=int(data.get('timeout') or DEFAULT_TIMEOUT),
                output=OutputConfig(json_default=bool(output.get('json_default', False))),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid config value: {e}")

        cfg.validate()
        return cfg


def config_path() -> Path:
    """
    Resolve the config file path.

    $VMS_HOURS_CONFIG wins; otherwise the platform config dir is used:
      Linux/macOS: $XDG_CONFIG_HOME or ~/.config
      Windows: %APPDATA%
    """
    override = os.environ.get(CONFIG_PATH_ENV)
    if override:
        return Path(override).expanduser()

    if os.name == 'nt' and os.environ.get('APPDATA'):
        base = Path(os.environ['APPDATA'])
    elif os.environ.get('XDG_CONFIG_HOME'):
        base = Path(os.environ['XDG_CONFIG_HOME'])
    else:
        base = Path.home() / ".config"
    return base / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def load_config(path: Optional[Path] = None) -> Config:
    """
    Load configuration, falling back to defaults when no file exists.

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    path = path or config_path()
    if not path.exists():
        return Config()

    try:
        data = yaml.safe_load(path.read_text(encoding='utf-8'))
    except OSError as e:
        raise ConfigError(f"read config {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"parse config yaml {path}: {e}")

    if data is None:
        return Config()
    if not isinstance(data, dict):
        raise ConfigError(f"config {path} must be a mapping")
    return Config.from_dict(data)


def save_config(cfg: Config, path: Optional[Path] = None) -> Path:
    """
    Write configuration as YAML.

    The directory is created private to the user and the file is written
    with mode 0600.

    Returns:
        Path written to
    """
    path = path or config_path()
    try:
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        text = yaml.safe_dump(cfg.to_dict(), default_flow_style=False, sort_keys=False)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(text)
    except OSError as e:
        raise ConfigError(f"write config {path}: {e}")
    return path


def load_timezone(name: str) -> tzinfo:
    """
    Load an IANA timezone by name.

    Raises:
        ConfigError: If the name is unknown
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"invalid timezone '{name}': {e}")


def resolve_timezone(cfg: Config) -> tzinfo:
    """
    Resolve the timezone used for date handling.

    Returns the configured timezone, or the system local timezone if none
    is configured.
    """
    if cfg.timezone:
        return load_timezone(cfg.timezone)
    return datetime.now().astimezone().tzinfo
