import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Iterator, List

from kubernetes.client.exceptions import ApiException
from sqlalchemy.orm import Session

from app.api.schemas.deployment import DeploymentMetrics
from app.core.exceptions import DeployerError, NotFoundError, UpstreamError
from app.core.naming import derive_name
from app.external.k8s_client import K8sClient
from app.models.deployment import Deployment, DeploymentStatus
from app.repositories.deployment_repository import DeploymentRepository

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Recalcule les métriques observées des déploiements à partir des pods.

    Rien n'est planifié ici : ``reconcile_all`` est destiné à un ordonnanceur externe.
    """

    def __init__(self, session_factory: Callable[[], Session], k8s_client: K8sClient):
        self.session_factory = session_factory
        self.k8s_client = k8s_client

    @contextmanager
    def _repository(self) -> Iterator[DeploymentRepository]:
        db = self.session_factory()
        try:
            yield DeploymentRepository(db)
        finally:
            db.close()

    def reconcile(self, deployment_id: str) -> DeploymentMetrics:
        with self._repository() as repo:
            deployment = repo.get_by_id(deployment_id)
            if deployment is None:
                raise NotFoundError(f"deployment {deployment_id} not found")

            metrics = self._observe(deployment)
            repo.update_metrics(deployment_id, metrics.model_dump(mode="json"))

        logger.info(
            f"Déploiement {deployment_id}: {metrics.ready_pods}/{metrics.active_pods} pods prêts "
            f"({metrics.desired_pods} désirés)"
        )
        return metrics

    def reconcile_all(self) -> Dict[str, str]:
        """Réconcilie tous les déploiements running ; retourne le résultat par id"""
        with self._repository() as repo:
            deployment_ids = [d.id for d in repo.get_by_status(DeploymentStatus.RUNNING)]

        results = {}
        for deployment_id in deployment_ids:
            try:
                self.reconcile(deployment_id)
                results[deployment_id] = "ok"
            except DeployerError as e:
                logger.error(f"Réconciliation impossible pour {deployment_id}: {e.message}")
                results[deployment_id] = e.message
        return results

    def _observe(self, deployment: Deployment) -> DeploymentMetrics:
        try:
            pods = self.k8s_client.list_pods(deployment.namespace)
        except ApiException as e:
            raise UpstreamError(f"failed to list pods: ({e.status}) {e.reason}") from e

        prefix = f"{derive_name(deployment.name)}-"
        active: List = [pod for pod in pods if pod.metadata.name.startswith(prefix)]
        ready = [pod for pod in active if pod.status and pod.status.phase == "Running"]

        restart_count = sum(
            container.restart_count or 0
            for pod in active
            for container in ((pod.status and pod.status.container_statuses) or [])
        )

        uptime = 0
        if deployment.status == DeploymentStatus.RUNNING and deployment.deployed_at:
            uptime = max(0, int((datetime.utcnow() - deployment.deployed_at).total_seconds()))

        # cpu/mémoire/réseau restent à zéro sans metrics-server
        return DeploymentMetrics(
            active_pods=len(active),
            ready_pods=len(ready),
            desired_pods=(deployment.configuration or {}).get("replicas") or 0,
            last_restart_count=restart_count,
            uptime=uptime,
        )
