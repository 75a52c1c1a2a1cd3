"""
YAML configuration for dockstats.

The file lives at $XDG_CONFIG_HOME/dockstats/config.yaml (default
~/.config/dockstats/config.yaml) and is written with the defaults on first
run. Example:

    keybindings:
      quit: q
      refresh: r
      sort_cpu: c
    ui:
      refresh_interval: 2.0
    docker:
      show_all: false
      timeout: 10.0
    logging:
      level: INFO

Values are merged section by section over the dataclass defaults. Unknown
keys and values of the wrong type are logged and ignored; a file that
cannot be parsed at all leaves every default in place. Command line flags
take precedence over anything read here.
"""

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class KeyBindings:
    quit: str = "q"
    refresh: str = "r"
    sort_cpu: str = "c"
    sort_memory: str = "m"
    sort_name: str = "n"
    sort_network: str = "o"
    sort_disk: str = "d"
    sort_image: str = "i"


@dataclass
class UIConfig:
    refresh_interval: float = 2.0  # seconds between collect cycles
    show_summary: bool = True


@dataclass
class DockerConfig:
    show_all: bool = False
    timeout: float = 10.0  # seconds, bounds one collect cycle and each API call


@dataclass
class LogConfig:
    level: str = "INFO"
    file_path: Optional[str] = None  # None: XDG data dir
    max_size_mb: int = 10
    backup_count: int = 5


@dataclass
class AppConfig:
    keybindings: KeyBindings = field(default_factory=KeyBindings)
    ui: UIConfig = field(default_factory=UIConfig)
    docker: DockerConfig = field(default_factory=DockerConfig)
    logging: LogConfig = field(default_factory=LogConfig)


def default_config_dir() -> Path:
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home) / "dockstats"
    return Path.home() / ".config" / "dockstats"


def _coerce(current: Any, value: Any) -> Any:
    """Convert a YAML value to the type of the default it replaces. Raises ValueError."""
    if value is None or current is None:
        return value
    if isinstance(current, bool):
        if not isinstance(value, bool):
            raise ValueError(f"expected true/false, got {value!r}")
        return value
    if isinstance(current, (int, float)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"expected a number, got {value!r}")
        return type(current)(value)
    return str(value)


class ConfigManager:
    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir else default_config_dir()
        self.config_file = self.config_dir / "config.yaml"
        self._config = AppConfig()

        self.load_config()

    def load_config(self) -> None:
        if not self.config_file.exists():
            self._config = AppConfig()
            self.save_config()
            logger.info(f"Wrote default configuration to {self.config_file}")
            return

        try:
            with open(self.config_file, "r") as f:
                user_config = yaml.safe_load(f) or {}
            if not isinstance(user_config, dict):
                raise ValueError("top-level YAML value must be a mapping")
        except (OSError, yaml.YAMLError, ValueError) as e:
            logger.error(f"Failed to load config from {self.config_file}: {e}, using defaults")
            self._config = AppConfig()
            return

        self._config = self._merge_configs(AppConfig(), user_config)
        logger.debug(f"Loaded configuration from {self.config_file}")

    def save_config(self) -> None:
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w") as f:
                yaml.safe_dump(asdict(self._config), f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            logger.error(f"Failed to save config: {e}")

    def get_config(self) -> AppConfig:
        return self._config

    def _merge_configs(self, config: AppConfig, user: Dict[str, Any]) -> AppConfig:
        for section in fields(config):
            updates = user.get(section.name)
            if updates is None:
                continue
            if not isinstance(updates, dict):
                logger.warning(f"Ignoring config section '{section.name}': not a mapping")
                continue
            self._merge_dataclass(getattr(config, section.name), updates, section.name)
        return config

    def _merge_dataclass(self, obj: Any, updates: Dict[str, Any], section: str) -> None:
        for key, value in updates.items():
            if not hasattr(obj, key):
                logger.warning(f"Ignoring unknown config key: {section}.{key}")
                continue
            try:
                setattr(obj, key, _coerce(getattr(obj, key), value))
            except ValueError as e:
                logger.warning(f"Ignoring config value {section}.{key}: {e}")

    def get_key_binding(self, action: str) -> str:
        return getattr(self._config.keybindings, action, "")

    def is_key_binding(self, key: str, action: str) -> bool:
        binding = self.get_key_binding(action)
        return bool(binding) and key.lower() == binding.lower()

    def get_log_level(self) -> str:
        level = str(self._config.logging.level).upper()
        return level if level in LOG_LEVELS else "INFO"

    def get_custom_log_path(self) -> Optional[str]:
        return self._config.logging.file_path

    def get_refresh_interval(self) -> float:
        return max(0.1, self._config.ui.refresh_interval)

    def get_timeout(self) -> float:
        return max(1.0, self._config.docker.timeout)

    def should_show_all(self) -> bool:
        return self._config.docker.show_all


config_manager = ConfigManager()
