"""Workload registry."""

from typing import Callable, Dict, List, Optional

from personal_server.config import Config, GeneralConfig, ModuleConfig
from personal_server.utils.errors import ConfigurationError

from .base import Backuper, Workload

WorkloadFactory = Callable[[str, GeneralConfig, Optional[ModuleConfig]], Workload]


class WorkloadRegistry:
    """Holds workload factories indexed by name, in registration order."""

    def __init__(self):
        self._factories: Dict[str, WorkloadFactory] = {}
        self._requires_module_config: Dict[str, bool] = {}

    def register(self, name: str, factory: WorkloadFactory, requires_module_config: bool = True) -> None:
        """
        Register a workload factory.

        Args:
            name: Workload name, as used in the ``modules`` configuration list
            factory: Callable building the workload
            requires_module_config: Whether the workload needs a ``modules`` entry
        """
        self._factories[name] = factory
        self._requires_module_config[name] = requires_module_config

    def names(self) -> List[str]:
        """Return every registered workload name."""
        return list(self._factories)

    def get(self, name: str, config: Config) -> Workload:
        """
        Build a workload.

        Raises:
            ConfigurationError: If the workload is unknown or its module configuration is missing
        """
        factory = self._factories.get(name)
        if factory is None:
            raise ConfigurationError(f"Unknown workload: {name}")

        module = config.get_module(name)
        if module is None and self._requires_module_config[name]:
            raise ConfigurationError(f"Workload '{name}' has no entry in the modules configuration")

        return factory(name, config.general, module)

    def try_get_backuper(self, name: str, config: Config) -> Optional[Backuper]:
        """
        Build a workload and return it only if it supports backup.

        Raises:
            ConfigurationError: If the workload cannot be built
        """
        workload = self.get(name, config)
        if isinstance(workload, Backuper):
            return workload
        return None

    def supports_backup(self, name: str) -> bool:
        """Whether the workload class behind ``name`` implements backup, without building it."""
        factory = self._factories[name]
        return isinstance(factory, type) and callable(getattr(factory, "backup", None))

    def requires_module_config(self, name: str) -> bool:
        return self._requires_module_config[name]
