"""Configuration management for the tokensmith engine."""

import logging
from pathlib import Path
from dataclasses import dataclass, fields, asdict
from typing import Optional, Dict, Any
import yaml

from .token_engine.schema import NamingScheme

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.tokensmith/config.yaml")


@dataclass
class ConfigModel:
    """Global configuration model for tokensmith."""

    # Compliance
    minimum_contrast_ratio: float = 4.5  # WCAG AA
    auto_scan: bool = True  # Re-check compliance pairs after every write batch
    auto_fix: bool = True
    on_tone_fallback: bool = True  # Black/white substitution for non-scale foregrounds
    max_fix_passes: int = 8

    # Cascade endpoints (near-white at 000, near-black at 1000)
    light_end_saturation: float = 0.02
    light_end_value: float = 0.98
    dark_saturation_factor: float = 1.2
    dark_value_factor: float = 0.08
    dark_value_floor: float = 0.03

    # Variable naming
    css_var_prefix: str = "--tokens"
    naming_scheme: NamingScheme = NamingScheme.ALIAS

    # Diagnostics
    log_level: str = "WARNING"

    def __post_init__(self):
        """Post-initialization validation."""
        if isinstance(self.naming_scheme, str):
            self.naming_scheme = NamingScheme(self.naming_scheme)

        if not 1.0 <= self.minimum_contrast_ratio <= 21.0:
            raise ValueError(
                f"minimum_contrast_ratio must be between 1 and 21, got {self.minimum_contrast_ratio}"
            )
        for name in ("light_end_saturation", "light_end_value", "dark_value_floor"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {value}")
        if self.dark_saturation_factor < 0 or self.dark_value_factor < 0:
            raise ValueError("Cascade factors must not be negative")
        if self.max_fix_passes < 1:
            raise ValueError("max_fix_passes must be at least 1")
        if not self.css_var_prefix.startswith("--"):
            raise ValueError(f"css_var_prefix must start with '--', got {self.css_var_prefix!r}")

        self.log_level = self.log_level.upper()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["naming_scheme"] = self.naming_scheme.value
        return data

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        return yaml.dump(self.to_dict(), default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ConfigModel":
        """Deserialize config from YAML.

        Unknown keys are ignored with a warning.
        """
        data = yaml.safe_load(yaml_str) or {}
        if not isinstance(data, dict):
            raise ValueError("Configuration must be a mapping")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")

        return cls(**{key: value for key, value in data.items() if key in known})

    def get_config_path(self) -> Path:
        """Get the default config file path."""
        return DEFAULT_CONFIG_PATH.expanduser()


class Config:
    """Configuration manager for tokensmith."""

    _instance: Optional[ConfigModel] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> ConfigModel:
        """Load configuration from file, falling back to defaults."""
        if cls._instance is not None and config_path is None:
            return cls._instance

        config = ConfigModel()

        if config_path is None:
            config_path = config.get_config_path()

        if config_path.exists():
            try:
                with open(config_path, 'r', encoding='utf-8') as f:
                    config = ConfigModel.from_yaml(f.read())
                logger.debug(f"Loaded configuration from {config_path}")
            except (OSError, yaml.YAMLError, ValueError, TypeError) as e:
                logger.warning(f"Failed to load config from {config_path}: {e}; using defaults")
                config = ConfigModel()
        else:
            logger.debug(f"No configuration at {config_path}; using defaults")

        cls._instance = config
        return config

    @classmethod
    def save(cls, config: ConfigModel, config_path: Optional[Path] = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = config.get_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write(config.to_yaml())
        logger.info(f"Configuration saved to {config_path}")

    @classmethod
    def get(cls) -> ConfigModel:
        """Get the current configuration instance."""
        if cls._instance is None:
            cls._instance = cls.load()
        return cls._instance

    @classmethod
    def reload(cls, config_path: Optional[Path] = None) -> ConfigModel:
        """Reload configuration from file."""
        cls._instance = None
        return cls.load(config_path)

    @classmethod
    def reset(cls) -> None:
        """Forget the cached configuration."""
        cls._instance = None


def get_config() -> ConfigModel:
    """Get the current configuration."""
    return Config.get()


def load_config(config_path: Optional[Path] = None) -> ConfigModel:
    """Load configuration from file."""
    return Config.load(config_path)


def save_config(config: ConfigModel, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""
    Config.save(config, config_path)
