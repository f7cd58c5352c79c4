"""Built-in workload registry."""

from .manifest import ManifestWorkload
from .pods import BitwardenWorkload, GiteaWorkload, HobbyPodWorkload, WebdavWorkload
from .postgres import PostgresWorkload
from .redis import RedisWorkload
from .registry import WorkloadRegistry


def default_registry() -> WorkloadRegistry:
    """Return a registry with every built-in workload."""
    registry = WorkloadRegistry()

    # Workloads that only need general config
    registry.register("namespace", ManifestWorkload, requires_module_config=False)

    # Workloads that need module-specific config
    registry.register("cloudflare", ManifestWorkload)
    registry.register("bitwarden", BitwardenWorkload)
    registry.register("webdav", WebdavWorkload)
    registry.register("hobby-pod", HobbyPodWorkload)
    registry.register("drone", ManifestWorkload)
    registry.register("gitea", GiteaWorkload)
    registry.register("monitoring", ManifestWorkload)
    registry.register("postgres", PostgresWorkload)
    registry.register("redis", RedisWorkload)
    registry.register("pgadmin", ManifestWorkload)
    registry.register("ssh-login-notifier", ManifestWorkload)

    return registry
