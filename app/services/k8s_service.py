from typing import List, Dict, Optional, Any
from kubernetes.client.exceptions import ApiException
from app.core.exceptions import NotFoundError, UpstreamError
from app.external.k8s_client import K8sClient
import logging

logger = logging.getLogger(__name__)


def _timestamp(value) -> Optional[str]:
    return value.isoformat() if value else None


def _k8s_error(operation: str, e: ApiException) -> UpstreamError:
    logger.error(f"Erreur Kubernetes lors de '{operation}': {e.status} {e.reason}")
    return UpstreamError(f"failed to {operation}: ({e.status}) {e.reason}")


def convert_pod(pod) -> Dict[str, Any]:
    """Convertit un V1Pod en dictionnaire sérialisable"""
    container_statuses = {s.name: s for s in (pod.status.container_statuses or [])}
    containers = []
    for container in pod.spec.containers or []:
        status = container_statuses.get(container.name)
        containers.append({
            "name": container.name,
            "image": container.image,
            "ready": bool(status and status.ready),
            "restart_count": status.restart_count if status else 0,
        })

    return {
        "name": pod.metadata.name,
        "namespace": pod.metadata.namespace,
        "status": pod.status.phase or "Unknown",
        "node": pod.spec.node_name,
        "pod_ip": pod.status.pod_ip,
        "labels": pod.metadata.labels or {},
        "created": _timestamp(pod.metadata.creation_timestamp),
        "containers": containers,
    }


class K8sService:
    """Lectures de l'état du cluster (namespaces, pods, services, noeuds, événements)"""

    def __init__(self, k8s_client: K8sClient, default_namespace: str = "espaze-node-deployer-apps"):
        self.k8s_client = k8s_client
        self.default_namespace = default_namespace

    def get_cluster_info(self) -> Dict[str, Any]:
        """Récupère la version du serveur et le nombre de noeuds, namespaces et pods"""
        try:
            version = self.k8s_client.get_server_version()
            nodes = self.k8s_client.list_nodes()
            namespaces = self.k8s_client.list_namespaces()
            pods = self.k8s_client.list_pods()
        except ApiException as e:
            raise _k8s_error("get cluster info", e) from e

        return {
            "version": version.git_version,
            "platform": version.platform,
            "nodes_count": len(nodes),
            "namespaces_count": len(namespaces),
            "pods_count": len(pods),
        }

    def get_namespaces(self) -> List[str]:
        try:
            namespaces = self.k8s_client.list_namespaces()
        except ApiException as e:
            raise _k8s_error("list namespaces", e) from e
        logger.info(f"Récupération de {len(namespaces)} namespaces")
        return [ns.metadata.name for ns in namespaces]

    def get_pods(self, namespace: Optional[str] = None, all_namespaces: bool = False) -> Dict[str, Any]:
        """Récupère les pods d'un namespace (ou de tout le cluster)"""
        scope = None if all_namespaces else (namespace or self.default_namespace)
        try:
            pods = [convert_pod(pod) for pod in self.k8s_client.list_pods(scope)]
        except ApiException as e:
            raise _k8s_error("list pods", e) from e

        status_summary: Dict[str, int] = {}
        for pod in pods:
            status_summary[pod["status"]] = status_summary.get(pod["status"], 0) + 1

        logger.info(f"Récupération de {len(pods)} pods ({scope or 'tous les namespaces'})")
        return {
            "namespace": scope,
            "pods": pods,
            "total_count": len(pods),
            "status_summary": status_summary,
        }

    def get_pod(self, namespace: str, name: str) -> Dict[str, Any]:
        try:
            pod = self.k8s_client.read_pod(namespace, name)
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"pod {namespace}/{name} not found") from e
            raise _k8s_error("get pod", e) from e
        return convert_pod(pod)

    def get_pod_logs(self, namespace: str, name: str, tail_lines: int = 100) -> Dict[str, Any]:
        tail_lines = tail_lines or 100
        try:
            logs = self.k8s_client.read_pod_logs(namespace, name, tail_lines)
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"pod {namespace}/{name} not found") from e
            raise _k8s_error("get pod logs", e) from e
        return {"namespace": namespace, "pod": name, "tail_lines": tail_lines, "logs": logs}

    def get_services(self, namespace: Optional[str] = None) -> Dict[str, Any]:
        namespace = namespace or self.default_namespace
        try:
            items = self.k8s_client.list_services(namespace)
        except ApiException as e:
            raise _k8s_error("list services", e) from e

        services = [
            {
                "name": svc.metadata.name,
                "namespace": svc.metadata.namespace,
                "type": svc.spec.type,
                "cluster_ip": svc.spec.cluster_ip,
                "selector": svc.spec.selector or {},
                "ports": [
                    {
                        "port": port.port,
                        "target_port": str(port.target_port) if port.target_port is not None else None,
                        "protocol": port.protocol,
                    }
                    for port in svc.spec.ports or []
                ],
                "created": _timestamp(svc.metadata.creation_timestamp),
            }
            for svc in items
        ]
        return {"namespace": namespace, "services": services, "total_count": len(services)}

    def get_nodes(self) -> List[Dict[str, Any]]:
        try:
            items = self.k8s_client.list_nodes()
        except ApiException as e:
            raise _k8s_error("list nodes", e) from e

        nodes = []
        for node in items:
            ready = next((c.status for c in node.status.conditions or [] if c.type == "Ready"), "Unknown")
            info = node.status.node_info
            nodes.append({
                "name": node.metadata.name,
                "ready": ready == "True",
                "kubelet_version": info.kubelet_version if info else None,
                "os_image": info.os_image if info else None,
                "capacity": dict(node.status.capacity or {}),
                "labels": node.metadata.labels or {},
                "created": _timestamp(node.metadata.creation_timestamp),
            })
        return nodes

    def get_events(self, namespace: Optional[str] = None) -> List[Dict[str, Any]]:
        namespace = namespace or self.default_namespace
        try:
            items = self.k8s_client.list_events(namespace)
        except ApiException as e:
            raise _k8s_error("list events", e) from e

        return [
            {
                "type": event.type,
                "reason": event.reason,
                "message": event.message,
                "object": f"{event.involved_object.kind}/{event.involved_object.name}"
                if event.involved_object else None,
                "count": event.count or 0,
                "last_timestamp": _timestamp(event.last_timestamp),
            }
            for event in items
        ]
