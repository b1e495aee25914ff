"""
Settings and well-known paths for the MCP integration layer.

Process-wide settings come from the environment (``TOOLBRIDGE_*``) or a
``.env`` file. The global MCP config file (``config.json`` next to the
registry) holds user preferences that survive across sessions.
"""

from __future__ import annotations

import json
import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_MCP_CONFIG_DIR = Path.home() / ".config" / "toolbridge" / "mcp"
DEFAULT_REGISTRY_FILE = "registry.json"
DEFAULT_GLOBAL_CONFIG_FILE = "config.json"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


class BridgeSettings(BaseSettings):
    config_dir: Path = DEFAULT_MCP_CONFIG_DIR
    registry_file: str = DEFAULT_REGISTRY_FILE
    request_timeout_seconds: float = 60.0
    health_check_timeout_seconds: float = 5.0
    name_prefix: str = "mcp"
    log_level: str = "info"

    model_config = SettingsConfigDict(
        env_prefix="TOOLBRIDGE_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def registry_path(self) -> Path:
        return self.config_dir.expanduser() / self.registry_file

    @property
    def global_config_path(self) -> Path:
        return self.config_dir.expanduser() / DEFAULT_GLOBAL_CONFIG_FILE


@lru_cache(maxsize=1)
def get_settings() -> BridgeSettings:
    return BridgeSettings()


def get_default_registry_path() -> Path:
    """Registry file from the global config (``customServersPath``), else from settings."""
    custom = load_global_config().custom_servers_path
    if custom:
        return Path(custom).expanduser()
    return get_settings().registry_path


def expand_env_vars(value: str) -> str:
    """
    Replace ``${VAR}`` references with values from the environment.

    Used for config file values and for stdio server environments alike.
    Unset variables expand to an empty string.
    """

    def lookup(match: re.Match) -> str:
        name = match.group(1)
        if name not in os.environ:
            logger.warning(f"Environment variable not set: {name}")
        return os.environ.get(name, "")

    return ENV_VAR_PATTERN.sub(lookup, value)


def configure_logging(level: Optional[str] = None) -> None:
    """Install the standard log format for applications embedding the bridge."""
    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


# ==================== Global MCP Config ====================


class GlobalConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    default_timeout: int = 60000
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    custom_servers_path: Optional[str] = None


def load_global_config(config_path: Optional[Union[str, Path]] = None) -> GlobalConfig:
    """
    Load the global MCP config, falling back to defaults.

    Keys present in the file override the defaults; a missing, unreadable
    or invalid file yields the defaults.
    """
    path = Path(config_path) if config_path else get_settings().global_config_path

    if not path.exists():
        return GlobalConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return GlobalConfig.model_validate(data)
    except (OSError, ValueError, ValidationError) as e:
        logger.warning(f"Ignoring invalid MCP config {path}: {e}")
        return GlobalConfig()


def save_global_config(config: GlobalConfig, config_path: Optional[Union[str, Path]] = None) -> Path:
    path = Path(config_path) if config_path else get_settings().global_config_path
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.model_dump(by_alias=True, exclude_none=True), f, indent=2)

    logger.info(f"MCP config saved to {path}")
    return path
