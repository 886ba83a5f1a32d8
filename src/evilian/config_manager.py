"""Configuration management module.

This module reads optional operator defaults from a TOML file and resolves
the environment the Azure CLI runs in.

Config file: ~/.evilian/config.toml (or --config PATH)

    default_region = "germanywestcentral"
    default_vm_size = "Standard_B2as_v2"
    default_image = "Debian:debian-13:13-gen2:latest"
    trusted_ranges_file = "~/cloudflare.yaml"

Nothing is ever written back: evilian keeps no local state between runs.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomli  # type: ignore[import]
except ImportError:
    # Fallback for older Python versions
    try:
        import tomllib as tomli  # type: ignore[import]
    except ImportError as e:
        raise ImportError("toml library not available. Install with: pip install tomli") from e

from evilian.exceptions import EvilianError

logger = logging.getLogger(__name__)

DEFAULT_REGION = "germanywestcentral"
DEFAULT_VM_SIZE = "Standard_B2as_v2"
DEFAULT_IMAGE = "Debian:debian-13:13-gen2:latest"


class ConfigError(EvilianError):
    """Raised when configuration operations fail."""

    exit_code = 2


@dataclass
class EvilianConfig:
    """Evilian configuration data."""

    default_region: str = DEFAULT_REGION
    default_vm_size: str = DEFAULT_VM_SIZE
    default_image: str = DEFAULT_IMAGE
    trusted_ranges_file: str | None = None

    @property
    def region(self) -> str:
        """Convenience property for default_region."""
        return self.default_region

    @property
    def vm_size(self) -> str:
        """Convenience property for default_vm_size."""
        return self.default_vm_size

    @property
    def image(self) -> str:
        """Convenience property for default_image."""
        return self.default_image

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EvilianConfig":
        """Create from dictionary."""
        return cls(
            default_region=data.get("default_region", DEFAULT_REGION),
            default_vm_size=data.get("default_vm_size", DEFAULT_VM_SIZE),
            default_image=data.get("default_image", DEFAULT_IMAGE),
            trusted_ranges_file=data.get("trusted_ranges_file"),
        )


class ConfigManager:
    """Read the evilian configuration file.

    A missing default file is not an error; a missing file given explicitly
    with --config is.
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".evilian"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"

    @classmethod
    def get_config_path(cls, custom_path: str | None = None) -> Path:
        """Get configuration file path.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            Path to config file
        """
        if custom_path:
            return Path(custom_path).expanduser().resolve()
        return cls.DEFAULT_CONFIG_FILE

    @classmethod
    def load_config(cls, custom_path: str | None = None) -> EvilianConfig:
        """Load configuration from file.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            EvilianConfig object (defaults if the default file does not exist)

        Raises:
            ConfigError: If an explicit file is missing or the TOML is invalid
        """
        config_path = cls.get_config_path(custom_path)

        if not config_path.exists():
            if custom_path:
                raise ConfigError(f"Config file not found: {config_path}")
            logger.debug(f"No config file at {config_path}, using defaults")
            return EvilianConfig()

        try:
            with open(config_path, "rb") as f:
                data = tomli.load(f)  # type: ignore[attr-defined]
        except Exception as e:
            raise ConfigError(f"Failed to parse config file {config_path}: {e}") from e

        logger.debug(f"Loaded config from {config_path}")
        return EvilianConfig.from_dict(data)


def get_azure_config_dir() -> Path:
    """Resolve the Azure CLI configuration directory.

    Honours AZURE_CONFIG_DIR so that tools sharing one login session share
    one config directory, and falls back to ~/.azure instead of letting the
    CLI create a .azure directory in the working directory.
    """
    value = os.environ.get("AZURE_CONFIG_DIR")
    if value:
        return Path(value).expanduser()
    return Path.home() / ".azure"


__all__ = [
    "DEFAULT_IMAGE",
    "DEFAULT_REGION",
    "DEFAULT_VM_SIZE",
    "ConfigError",
    "ConfigManager",
    "EvilianConfig",
    "get_azure_config_dir",
]
