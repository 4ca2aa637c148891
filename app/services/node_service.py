import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterator, List, Optional

from kubernetes.client.exceptions import ApiException
from kubernetes.utils import parse_quantity
from sqlalchemy.orm import Session

from app.api.schemas.node import NodeRegistrationRequest, NodeResources, NodeUpdateRequest
from app.core.exceptions import NotFoundError, UpstreamError, ValidationError
from app.external.k8s_client import K8sClient
from app.models.node import Node, NodeStatus
from app.repositories.node_repository import NodeRepository

logger = logging.getLogger(__name__)

# capacité par défaut d'un noeud Kubernetes (kubelet --max-pods)
DEFAULT_PODS_PER_NODE = 110


class NodeService:
    """Registre des machines qui hébergent les déploiements.

    Un noeud est identifié par son adresse MAC : un second enregistrement
    de la même machine met à jour le noeud existant.
    """

    def __init__(self, session_factory: Callable[[], Session], k8s_client: K8sClient,
                 pods_per_node: int = DEFAULT_PODS_PER_NODE):
        self.session_factory = session_factory
        self.k8s_client = k8s_client
        self.pods_per_node = pods_per_node

    @contextmanager
    def _repository(self) -> Iterator[NodeRepository]:
        db = self.session_factory()
        try:
            yield NodeRepository(db)
        finally:
            db.close()

    @staticmethod
    def _get_or_raise(repo: NodeRepository, node_id: str) -> Node:
        node = repo.get_by_id(node_id)
        if node is None:
            raise NotFoundError(f"node {node_id} not found")
        return node

    def register_node(self, request: NodeRegistrationRequest) -> Node:
        if not request.mac_address:
            raise ValidationError("MAC address is required")
        if not request.node_name:
            raise ValidationError("node name is required")

        with self._repository() as repo:
            existing = repo.get_by_mac_address(request.mac_address)
            if existing is not None:
                logger.info(f"Noeud {existing.id} ({request.mac_address}) de nouveau en ligne")
                return repo.update(existing.id, {
                    "status": NodeStatus.ONLINE,
                    "location": request.location.model_dump(),
                    "resources": request.resources.model_dump(),
                    "cluster_info": request.cluster_info.model_dump(),
                    "last_seen_at": datetime.utcnow(),
                })

            node = repo.create({
                "node_name": request.node_name,
                "mac_address": request.mac_address,
                "public_ip": request.public_ip,
                "private_ip": request.private_ip,
                "status": NodeStatus.ONLINE,
                "location": request.location.model_dump(),
                "cluster_info": request.cluster_info.model_dump(),
                "resources": request.resources.model_dump(),
                "node_metadata": request.node_metadata.model_dump(),
            })
        logger.info(f"Noeud {node.id} enregistré: {node.node_name} ({node.mac_address})")
        return node

    def get_node(self, node_id: str) -> Node:
        with self._repository() as repo:
            return self._get_or_raise(repo, node_id)

    def list_nodes(self, filters: Optional[Dict[str, Any]] = None) -> List[Node]:
        with self._repository() as repo:
            return repo.get_all_filtered(filters)

    def update_node(self, node_id: str, changes: NodeUpdateRequest) -> Node:
        """Applique uniquement les champs fournis"""
        fields = changes.model_dump(exclude_unset=True, exclude_none=True)
        with self._repository() as repo:
            node = self._get_or_raise(repo, node_id)
            if not fields:
                return node
            return repo.update(node_id, fields)

    def delete_node(self, node_id: str) -> None:
        with self._repository() as repo:
            self._get_or_raise(repo, node_id)
            repo.delete(node_id)
        logger.info(f"Noeud {node_id} supprimé")

    def heartbeat(self, node_id: str) -> Node:
        with self._repository() as repo:
            self._get_or_raise(repo, node_id)
            return repo.update_last_seen(node_id)

    def get_stats(self) -> Dict[str, int]:
        with self._repository() as repo:
            return repo.get_stats()

    def update_node_resources(self, node_id: str) -> Node:
        """Relève la capacité du cluster (CPU, mémoire, pods) et l'enregistre sur le noeud"""
        with self._repository() as repo:
            self._get_or_raise(repo, node_id)

        resources = self._observe_resources()

        with self._repository() as repo:
            node = repo.update_resources(node_id, resources.model_dump())
            if node is None:
                raise NotFoundError(f"node {node_id} not found")
        logger.info(
            f"Ressources du noeud {node_id}: {resources.cpu_cores} CPU, "
            f"{resources.pods_running}/{resources.pods_capacity} pods"
        )
        return node

    def _observe_resources(self) -> NodeResources:
        try:
            nodes = self.k8s_client.list_nodes()
            pods = self.k8s_client.list_pods()
        except ApiException as e:
            raise UpstreamError(f"failed to get cluster resources: ({e.status}) {e.reason}") from e

        total_cpu = Decimal(0)
        total_memory = Decimal(0)
        for node in nodes:
            capacity = (node.status and node.status.capacity) or {}
            total_cpu += parse_quantity(capacity.get("cpu", "0"))
            total_memory += parse_quantity(capacity.get("memory", "0"))

        # métriques d'usage non relevées sans metrics-server
        return NodeResources(
            cpu_cores=int(total_cpu),
            memory_total=int(total_memory),
            pods_running=len(pods),
            pods_capacity=self.pods_per_node * len(nodes),
        )
