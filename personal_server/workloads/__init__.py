"""Workloads of the personal server and their optional capabilities."""

from .base import Backuper, Workload
from .defaults import default_registry
from .registry import WorkloadRegistry

__all__ = ["Backuper", "Workload", "WorkloadRegistry", "default_registry"]
