import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from kubernetes.client.exceptions import ApiException
from kubernetes.utils import parse_quantity

from app.core.exceptions import NotFoundError, UpstreamError
from app.external.k8s_client import K8sClient

logger = logging.getLogger(__name__)

# sans metrics-server, la consommation réelle n'est pas observable
USAGE_UNAVAILABLE = "N/A"


def format_age(created: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Durée écoulée au format kubectl (ex: 3d4h, 12m)"""
    if created is None:
        return ""
    now = now or datetime.now(timezone.utc)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    seconds = max(0, int((now - created).total_seconds()))
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    if days:
        return f"{days}d{hours}h"
    if hours:
        return f"{hours}h{minutes}m"
    if minutes:
        return f"{minutes}m"
    return f"{seconds}s"


class MetricsService:
    def __init__(self, k8s_client: K8sClient, default_namespace: str = "espaze-node-deployer-apps"):
        self.k8s_client = k8s_client
        self.default_namespace = default_namespace

    @staticmethod
    def _pod_metrics(pod) -> Dict[str, Any]:
        statuses = pod.status.container_statuses or []
        return {
            "name": pod.metadata.name,
            "namespace": pod.metadata.namespace,
            "status": pod.status.phase or "Unknown",
            "restart_count": sum(s.restart_count or 0 for s in statuses),
            "age": format_age(pod.metadata.creation_timestamp),
            "cpu_usage": USAGE_UNAVAILABLE,
            "memory_usage": USAGE_UNAVAILABLE,
        }

    def get_pod_metrics(self, namespace: Optional[str] = None) -> List[Dict[str, Any]]:
        namespace = namespace or self.default_namespace
        try:
            pods = self.k8s_client.list_pods(namespace)
        except ApiException as e:
            raise UpstreamError(f"failed to list pods: ({e.status}) {e.reason}") from e
        return [self._pod_metrics(pod) for pod in pods]

    def get_cluster_metrics(self) -> Dict[str, Any]:
        """Capacité totale des noeuds et répartition des pods par phase"""
        try:
            nodes = self.k8s_client.list_nodes()
            pods = self.k8s_client.list_pods()
            namespaces = self.k8s_client.list_namespaces()
        except ApiException as e:
            raise UpstreamError(f"failed to get cluster metrics: ({e.status}) {e.reason}") from e

        phases = {"Running": 0, "Pending": 0, "Failed": 0}
        for pod in pods:
            if pod.status.phase in phases:
                phases[pod.status.phase] += 1

        total_cpu = Decimal(0)
        total_memory = Decimal(0)
        for node in nodes:
            capacity = node.status.capacity or {}
            total_cpu += parse_quantity(capacity.get("cpu", "0"))
            total_memory += parse_quantity(capacity.get("memory", "0"))

        return {
            "total_nodes": len(nodes),
            "total_pods": len(pods),
            "running_pods": phases["Running"],
            "pending_pods": phases["Pending"],
            "failed_pods": phases["Failed"],
            "total_cpu": str(int(total_cpu)),
            "total_memory": f"{int(total_memory / (1024 ** 3))}Gi",
            "cpu_usage_percent": 0.0,
            "memory_usage_percent": 0.0,
            "namespaces_count": len(namespaces),
        }

    def get_deployment_metrics(self, name: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        """Réplicas d'un Deployment Kubernetes et état de santé dérivé"""
        namespace = namespace or self.default_namespace
        try:
            workload = self.k8s_client.read_deployment(namespace, name)
            pods = self.k8s_client.list_pods(namespace)
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"deployment {namespace}/{name} not found") from e
            raise UpstreamError(f"failed to get deployment metrics: ({e.status}) {e.reason}") from e

        desired = workload.spec.replicas or 0
        available = workload.status.available_replicas or 0
        if available == 0:
            health = "Unavailable"
        elif available < desired:
            health = "Degraded"
        else:
            health = "Healthy"

        return {
            "name": workload.metadata.name,
            "namespace": workload.metadata.namespace,
            "desired_replicas": desired,
            "current_replicas": workload.status.replicas or 0,
            "available_replicas": available,
            "ready_replicas": workload.status.ready_replicas or 0,
            "pods": [
                self._pod_metrics(pod) for pod in pods
                if (pod.metadata.labels or {}).get("app") == name
            ],
            "status": health,
        }
