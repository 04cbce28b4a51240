from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

logger = logging.getLogger(__name__)


class InventoryUnavailable(Exception):
    """The Kubernetes client could not be configured."""


@dataclass(frozen=True)
class Container:
    name: str
    image: str


@dataclass(frozen=True)
class Workload:
    kind: str
    name: str
    namespace: str
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    containers: tuple[Container, ...] = ()

    @property
    def ref(self) -> str:
        return f"{self.kind}/{self.namespace}/{self.name}"


def _workload(kind: str, metadata: Any, pod_spec: Any) -> Workload:
    containers = getattr(pod_spec, "containers", None) or []
    return Workload(
        kind=kind,
        name=metadata.name or "",
        namespace=metadata.namespace or "",
        labels=dict(metadata.labels or {}),
        annotations=dict(metadata.annotations or {}),
        containers=tuple(Container(name=c.name or "", image=c.image or "") for c in containers),
    )


class KubernetesInventory:
    """Lists workloads across all namespaces through the Kubernetes API."""

    def __init__(self, core_api: client.CoreV1Api, apps_api: client.AppsV1Api, timeout_s: float = 10.0):
        self.core_api = core_api
        self.apps_api = apps_api
        self.timeout_s = timeout_s

    def list_pods(self) -> list[Workload]:
        resp = self.core_api.list_pod_for_all_namespaces(_request_timeout=self.timeout_s)
        return [_workload("pod", p.metadata, p.spec) for p in resp.items]

    def list_deployments(self) -> list[Workload]:
        resp = self.apps_api.list_deployment_for_all_namespaces(_request_timeout=self.timeout_s)
        return [_workload("deployment", d.metadata, d.spec.template.spec) for d in resp.items]

    def list_daemonsets(self) -> list[Workload]:
        resp = self.apps_api.list_daemon_set_for_all_namespaces(_request_timeout=self.timeout_s)
        return [_workload("daemonset", d.metadata, d.spec.template.spec) for d in resp.items]


def build_inventory(out_of_cluster: bool, kubeconfig: str, timeout_s: float = 10.0) -> KubernetesInventory:
    """Create an inventory client from the service account or a kubeconfig file.

    Raises InventoryUnavailable instead of exiting; the caller decides what to do.
    """
    configuration = client.Configuration()
    try:
        if out_of_cluster:
            config.load_kube_config(config_file=kubeconfig, client_configuration=configuration)
            logger.info("Loaded kubeconfig from %s", kubeconfig)
        else:
            config.load_incluster_config(client_configuration=configuration)
            logger.info("Loaded in-cluster Kubernetes config")
    except (ConfigException, OSError) as e:
        mode = f"kubeconfig {kubeconfig}" if out_of_cluster else "in-cluster config"
        raise InventoryUnavailable(f"Cannot load {mode}: {e}") from e

    api_client = client.ApiClient(configuration)
    return KubernetesInventory(client.CoreV1Api(api_client), client.AppsV1Api(api_client), timeout_s=timeout_s)
