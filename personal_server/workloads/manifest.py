"""Workloads that only carry Kubernetes manifests and hold no data of their own."""

from .base import Workload


class ManifestWorkload(Workload):
    """Stateless workload. Its manifests are regenerated, never backed up."""
