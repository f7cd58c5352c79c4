"""Kubernetes helpers shared by workloads."""

import logging
import os
from typing import List

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from personal_server.utils.errors import KubernetesError

logger = logging.getLogger(__name__)

MICROK8S = "/snap/bin/microk8s"


def kubectl_command() -> List[str]:
    """Return the argument prefix invoking kubectl on this host."""
    if os.path.exists(MICROK8S):
        return [MICROK8S, "kubectl"]
    return ["kubectl"]


def load_core_api():
    """Load kubeconfig and return a CoreV1Api client."""
    try:
        config.load_kube_config()
    except config.ConfigException:
        try:
            config.load_incluster_config()
        except config.ConfigException as e:
            raise KubernetesError(
                "No Kubernetes configuration found",
                details=str(e),
                suggestions=["Check ~/.kube/config or KUBECONFIG"],
            ) from e

    return client.CoreV1Api()


def find_pod(namespace: str, app: str) -> str:
    """
    Find the first pod labelled ``app=<app>``.

    Args:
        namespace: Kubernetes namespace
        app: Value of the ``app`` label

    Returns:
        str: Pod name

    Raises:
        KubernetesError: If the pods cannot be listed or none is running
    """
    v1 = load_core_api()

    try:
        pods = v1.list_namespaced_pod(namespace, label_selector=f"app={app}")
    except ApiException as e:
        raise KubernetesError(f"Failed to list pods in namespace '{namespace}': {e.reason}") from e

    if not pods.items:
        raise KubernetesError(f"No running pod found for app={app} in namespace '{namespace}'")

    pod_name = pods.items[0].metadata.name
    logger.info("Using pod: %s", pod_name)
    return pod_name
