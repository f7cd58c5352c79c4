"""Workload base class and optional capabilities."""

from typing import Optional, Protocol, runtime_checkable

from personal_server.config import GeneralConfig, ModuleConfig
from personal_server.utils.process import CancellationToken


class Workload:
    """A managed service module of the personal server."""

    def __init__(self, name: str, general: GeneralConfig, module: Optional[ModuleConfig] = None):
        """
        Initialize workload.

        Args:
            name: Registered workload name
            general: Settings shared by every workload
            module: Workload specific settings, if the workload needs any
        """
        self.name = name
        self.general = general
        self.module = module

    @property
    def namespace(self) -> str:
        if self.module and self.module.namespace:
            return self.module.namespace
        return self.general.namespaces[0] if self.general.namespaces else "default"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, namespace={self.namespace!r})"


@runtime_checkable
class Backuper(Protocol):
    """Capability of workloads that can export their own data."""

    name: str

    def backup(self, destination_dir: str, token: CancellationToken) -> None:
        """
        Export the workload's data into ``destination_dir``.

        Raises:
            PersonalServerError: If the export fails
        """
        ...
