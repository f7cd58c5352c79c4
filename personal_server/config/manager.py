"""Configuration management for personal-server CLI."""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from personal_server.utils.errors import (
    ConfigurationError,
    create_error_suggestions,
    format_validation_errors,
)

from .validator import ConfigValidator

DEFAULT_CONFIG_FILE = "config.yaml"
MASK = "********"


@dataclass
class GeneralConfig:
    """Settings shared by every workload."""

    domain: str = ""
    namespaces: List[str] = field(default_factory=list)


@dataclass
class ModuleConfig:
    """Per-workload settings."""

    name: str
    namespace: str = ""
    secrets: Dict[str, str] = field(default_factory=dict, repr=False)

    def get_secret(self, key: str, default: str = "") -> str:
        value = self.secrets.get(key)
        return default if value in (None, "") else str(value)


@dataclass
class BackupConfig:
    """Settings of the backup pipeline, its schedule and remote store."""

    webdav_host: str = ""
    webdav_username: str = ""
    webdav_password: str = field(default="", repr=False)
    passphrase: str = field(default="", repr=False)
    cron: str = ""
    sentry_dsn: str = field(default="", repr=False)
    staging_dir: str = "backups"
    max_workers: int = 1
    cipher_algo: str = "AES256"

    def require(self, *names: str) -> None:
        """
        Ensure the named settings are present.

        Raises:
            ConfigurationError: Listing every missing setting
        """
        missing = [name for name in names if not getattr(self, name)]
        if missing:
            raise ConfigurationError(
                f"Missing backup configuration: {', '.join('backup.' + name for name in missing)}",
                suggestions=[f"Set backup.{name} in the configuration file" for name in missing],
            )


@dataclass
class Config:
    """Loaded application configuration."""

    path: str = ""
    general: GeneralConfig = field(default_factory=GeneralConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    modules: List[ModuleConfig] = field(default_factory=list)
    pet_projects: List[Dict[str, Any]] = field(default_factory=list)

    def get_module(self, name: str) -> Optional[ModuleConfig]:
        """Return the configuration of a module, or None if absent."""
        for module in self.modules:
            if module.name == name:
                return module
        return None

    def to_dict(self, mask_secrets: bool = True) -> Dict[str, Any]:
        """
        Convert back to the on-disk layout.

        Args:
            mask_secrets: Replace every credential with a fixed mask

        Returns:
            Dict[str, Any]: Configuration dictionary
        """

        def secret(value: str) -> str:
            return MASK if mask_secrets and value else value

        backup = self.backup
        return {
            "general": {
                "domain": self.general.domain,
                "namespaces": list(self.general.namespaces),
            },
            "backup": {
                "webdav_host": backup.webdav_host,
                "webdav_username": backup.webdav_username,
                "webdav_password": secret(backup.webdav_password),
                "passphrase": secret(backup.passphrase),
                "cron": backup.cron,
                "sentry_dsn": secret(backup.sentry_dsn),
                "staging_dir": backup.staging_dir,
                "max_workers": backup.max_workers,
                "cipher_algo": backup.cipher_algo,
            },
            "modules": [
                {
                    "name": module.name,
                    "namespace": module.namespace,
                    "secrets": {key: secret(str(value)) for key, value in module.secrets.items()},
                }
                for module in self.modules
            ],
            "pet-projects": self.pet_projects,
        }


class ConfigManager:
    """Loads and validates personal-server configuration files."""

    def __init__(self):
        self.validator = ConfigValidator()
        self._config_cache: Dict[str, Config] = {}

    def load_config(self, config_path: str = DEFAULT_CONFIG_FILE, validate: bool = True) -> Config:
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to configuration file
            validate: Whether to validate the configuration against the schema

        Returns:
            Config: Loaded configuration

        Raises:
            ConfigurationError: If the file is missing, unreadable, malformed or invalid
        """
        config_path = os.path.abspath(config_path)

        if config_path in self._config_cache:
            return self._config_cache[config_path]

        if not os.path.exists(config_path):
            raise ConfigurationError(
                f"Configuration file not found: {config_path}",
                suggestions=["Pass the configuration file with --config"],
            )

        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Error parsing YAML file {config_path}",
                details=str(e),
                suggestions=create_error_suggestions("configuration_invalid"),
            ) from e
        except OSError as e:
            raise ConfigurationError(f"Error reading configuration file {config_path}: {e}") from e

        if data is None:
            data = {}

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")

        if validate:
            errors = self.validator.validate(data)
            if errors:
                raise ConfigurationError(
                    f"Invalid configuration file {config_path}",
                    details=format_validation_errors(errors),
                    suggestions=create_error_suggestions("configuration_invalid"),
                )

        config = self.build_config(data, config_path)
        self._config_cache[config_path] = config
        return config

    @staticmethod
    def build_config(data: Dict[str, Any], config_path: str = "") -> Config:
        """
        Build a Config from an already validated dictionary.

        Args:
            data: Parsed YAML document
            config_path: Absolute path the document was read from

        Returns:
            Config: Typed configuration
        """
        general = data.get("general") or {}
        backup = data.get("backup") or {}

        backup_config = BackupConfig(
            webdav_host=backup.get("webdav_host") or "",
            webdav_username=backup.get("webdav_username") or "",
            webdav_password=backup.get("webdav_password") or "",
            passphrase=backup.get("passphrase") or "",
            cron=backup.get("cron") or "",
            sentry_dsn=backup.get("sentry_dsn") or "",
            staging_dir=backup.get("staging_dir") or "backups",
            max_workers=backup.get("max_workers") or 1,
            cipher_algo=backup.get("cipher_algo") or "AES256",
        )

        modules = [
            ModuleConfig(
                name=module["name"],
                namespace=module.get("namespace") or "",
                secrets=dict(module.get("secrets") or {}),
            )
            for module in data.get("modules") or []
        ]

        return Config(
            path=config_path,
            general=GeneralConfig(
                domain=general.get("domain") or "",
                namespaces=list(general.get("namespaces") or []),
            ),
            backup=backup_config,
            modules=modules,
            pet_projects=list(data.get("pet-projects") or []),
        )
