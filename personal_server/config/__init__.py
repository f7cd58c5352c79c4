"""Configuration management for personal-server CLI."""

from .manager import BackupConfig, Config, ConfigManager, GeneralConfig, ModuleConfig
from .schemas import CONFIG_SCHEMA

__all__ = [
    "BackupConfig",
    "CONFIG_SCHEMA",
    "Config",
    "ConfigManager",
    "GeneralConfig",
    "ModuleConfig",
]
