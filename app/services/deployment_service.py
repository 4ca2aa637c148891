import copy
import logging
import threading
from contextlib import contextmanager
from functools import partial
from typing import Callable, Dict, Iterator, List, Optional

from sqlalchemy.orm import Session

from app.api.schemas.deployment import (
    DeploymentMetrics,
    DeploymentRequest,
    DeploymentUpdateRequest,
    SourceSnapshot,
)
from app.core.exceptions import (
    ConflictError,
    DeployerError,
    NotFoundError,
    ProvisioningCancelled,
    ValidationError,
)
from app.core.locks import KeyedLock
from app.core.naming import derive_name, is_dns_label
from app.external.github_client import GitHubClient
from app.models.deployment import Deployment, DeploymentStatus
from app.repositories.deployment_repository import DeploymentRepository
from app.services.deployment_policy import DeploymentPolicy
from app.services.provisioner import ResourceProvisioner, validate_resources
from app.workers.deployment_supervisor import DeploymentSupervisor

logger = logging.getLogger(__name__)

TASK_SETTLE_TIMEOUT = 10.0


class DeploymentService:
    """Cycle de vie des déploiements : création supervisée, commandes, lectures.

    Chaque opération ouvre sa propre session ; les commandes qui modifient un
    déploiement s'exécutent sous le verrou de son identifiant.
    """

    def __init__(self, session_factory: Callable[[], Session], github_client: GitHubClient,
                 provisioner: ResourceProvisioner, supervisor: DeploymentSupervisor,
                 policy: Optional[DeploymentPolicy] = None, build_delay: float = 5.0,
                 locks: Optional[KeyedLock] = None):
        self.session_factory = session_factory
        self.github_client = github_client
        self.provisioner = provisioner
        self.supervisor = supervisor
        self.policy = policy or DeploymentPolicy()
        self.build_delay = build_delay
        self.locks = locks or KeyedLock()

    @contextmanager
    def _repository(self) -> Iterator[DeploymentRepository]:
        db = self.session_factory()
        try:
            yield DeploymentRepository(db)
        finally:
            db.close()

    # Création

    def create_deployment(self, user_id: str, node_id: str, request: DeploymentRequest,
                          source_token: str) -> Deployment:
        self._validate_request(request)
        if not source_token:
            raise ValidationError("GitHub token is required")

        repo_ref = request.github_repo
        configuration = self.policy.resolve(request.configuration, repo_ref.owner, repo_ref.name)
        validate_resources(configuration)

        repository = self.github_client.get_repository(source_token, repo_ref.owner, repo_ref.name)
        branch = self.github_client.get_branch(source_token, repo_ref.owner, repo_ref.name, repo_ref.branch)
        dockerfile_path = self.github_client.find_dockerfile(
            source_token, repo_ref.owner, repo_ref.name, repo_ref.branch
        )
        if dockerfile_path is None:
            raise ConflictError("repository must contain a Dockerfile")
        build = configuration.build_config
        build.dockerfile = build.dockerfile or dockerfile_path

        snapshot = SourceSnapshot(
            owner=repository.get("owner") or repo_ref.owner,
            name=repository.get("name") or repo_ref.name,
            full_name=repository.get("full_name") or f"{repo_ref.owner}/{repo_ref.name}",
            branch=repo_ref.branch,
            commit_sha=branch.get("commit_sha", ""),
            clone_url=repository.get("clone_url", ""),
            private=repository.get("private", False),
            language=repository.get("language"),
            description=repository.get("description"),
        )

        with self._repository() as repo:
            deployment = repo.create({
                "user_id": user_id,
                "node_id": node_id,
                "name": request.name,
                "context_path": self._normalize_path(request.context_path),
                "namespace": self.policy.resolve_namespace(request.namespace),
                "status": DeploymentStatus.PENDING,
                "source_snapshot": snapshot.model_dump(),
                "configuration": configuration.model_dump(),
                "cluster_info": {},
                "metrics": DeploymentMetrics(desired_pods=configuration.replicas).model_dump(mode="json"),
            })

        logger.info(f"Déploiement {deployment.id} ({deployment.name}) créé pour l'utilisateur {user_id}")
        return self._launch(deployment.id)

    @staticmethod
    def _validate_request(request: DeploymentRequest) -> None:
        if not request.name:
            raise ValidationError("name is required")
        if not derive_name(request.name):
            raise ValidationError("name must contain at least one letter or digit")
        if not request.context_path:
            raise ValidationError("context path is required")
        if not request.github_repo.owner or not request.github_repo.name:
            raise ValidationError("GitHub repository owner and name are required")
        if not request.github_repo.branch:
            raise ValidationError("GitHub branch is required")
        if request.namespace and not is_dns_label(request.namespace):
            raise ValidationError(
                "namespace must be a lowercase DNS label (a-z, 0-9, '-') of at most 63 characters"
            )

    @staticmethod
    def _normalize_path(path: str) -> str:
        return path if path.startswith("/") else f"/{path}"

    def _launch(self, deployment_id: str) -> Deployment:
        with self._repository() as repo:
            deployment = self._get_or_raise(repo, deployment_id)
            deployment = repo.update(deployment_id, {"attempts": (deployment.attempts or 0) + 1})

        # après un échec, la tâche précédente peut encore être en train de se terminer
        self.supervisor.wait(deployment_id, timeout=TASK_SETTLE_TIMEOUT)
        try:
            self.supervisor.submit(deployment_id, partial(self._run_deployment, deployment_id))
        except ConflictError as e:
            self._mark_failed(deployment_id, e.message)
            raise
        return deployment

    def _run_deployment(self, deployment_id: str, cancel_event: threading.Event) -> None:
        """Tâche de fond : building -> (build simulé) -> deploying -> running | failed"""
        try:
            self._transition(deployment_id, DeploymentStatus.BUILDING)

            # TODO: remplacer l'attente par la construction et le push de l'image
            if cancel_event.wait(self.build_delay):
                raise ProvisioningCancelled("cancelled")

            with self.locks.hold(deployment_id):
                deployment = self._transition(deployment_id, DeploymentStatus.DEPLOYING)
                cluster_info = self.provisioner.provision(deployment, cancel_event)

                with self._repository() as repo:
                    repo.update(deployment_id, {"cluster_info": cluster_info.model_dump()})
                    repo.update_status(deployment_id, DeploymentStatus.RUNNING)
            logger.info(f"Déploiement {deployment_id} en cours d'exécution")
        except NotFoundError:
            logger.warning(f"Déploiement {deployment_id} supprimé pendant sa création")
        except DeployerError as e:
            logger.error(f"Échec du déploiement {deployment_id}: {e.message}")
            self._mark_failed(deployment_id, e.message)
        except Exception as e:
            logger.exception(f"Erreur inattendue pendant le déploiement {deployment_id}")
            self._mark_failed(deployment_id, str(e))

    def _transition(self, deployment_id: str, target: DeploymentStatus) -> Deployment:
        with self._repository() as repo:
            deployment = self._get_or_raise(repo, deployment_id)
            if not deployment.status.can_transition_to(target):
                raise ConflictError(
                    f"cannot move deployment from {deployment.status.value} to {target.value}"
                )
            return repo.update_status(deployment_id, target)

    def _mark_failed(self, deployment_id: str, error: str) -> None:
        with self._repository() as repo:
            deployment = repo.get_by_id(deployment_id)
            if deployment is None or not deployment.status.can_transition_to(DeploymentStatus.FAILED):
                return
            repo.update_status(deployment_id, DeploymentStatus.FAILED, last_error=error)

    # Lectures

    @staticmethod
    def _get_or_raise(repo: DeploymentRepository, deployment_id: str) -> Deployment:
        deployment = repo.get_by_id(deployment_id)
        if deployment is None:
            raise NotFoundError(f"deployment {deployment_id} not found")
        return deployment

    def get_deployment(self, deployment_id: str) -> Deployment:
        with self._repository() as repo:
            return self._get_or_raise(repo, deployment_id)

    def list_by_user(self, user_id: str) -> List[Deployment]:
        with self._repository() as repo:
            return repo.get_by_user(user_id)

    def list_by_node(self, node_id: str) -> List[Deployment]:
        with self._repository() as repo:
            return repo.get_by_node(node_id)

    def list_all(self, filters: Optional[Dict[str, str]] = None) -> List[Deployment]:
        with self._repository() as repo:
            return repo.get_all_filtered(filters)

    def get_stats(self, node_id: Optional[str] = None) -> Dict[str, int]:
        with self._repository() as repo:
            return repo.get_stats(node_id)

    # Commandes

    @staticmethod
    def _require_running(deployment: Deployment, operation: str) -> None:
        if deployment.status != DeploymentStatus.RUNNING:
            raise ConflictError(
                f"cannot {operation} deployment in status {deployment.status.value}"
            )

    def update_deployment(self, deployment_id: str, changes: DeploymentUpdateRequest) -> Deployment:
        """Applique les champs fournis ; les réplicas sont d'abord poussés au cluster"""
        with self.locks.hold(deployment_id):
            with self._repository() as repo:
                deployment = self._get_or_raise(repo, deployment_id)
                configuration = copy.deepcopy(deployment.configuration or {})
                fields = changes.model_dump(exclude_unset=True, exclude_none=True)
                if not fields:
                    return deployment

                if "replicas" in fields and fields["replicas"] != configuration.get("replicas"):
                    self._require_running(deployment, "update")
                    self.provisioner.rescale(deployment.namespace, derive_name(deployment.name),
                                             changes.replicas)
                if "replicas" in fields:
                    configuration["replicas"] = changes.replicas
                if "environment_vars" in fields:
                    configuration["environment_vars"] = dict(changes.environment_vars)
                if "auto_scaling" in fields:
                    configuration["auto_scaling"] = changes.auto_scaling.model_dump()

                logger.info(f"Déploiement {deployment_id} mis à jour: {sorted(fields)}")
                return repo.update(deployment_id, {"configuration": configuration})

    def scale_deployment(self, deployment_id: str, replicas: int) -> Deployment:
        if replicas < 0:
            raise ValidationError("replicas must be greater than or equal to 0")

        with self.locks.hold(deployment_id):
            with self._repository() as repo:
                deployment = self._get_or_raise(repo, deployment_id)
                self._require_running(deployment, "scale")
                self.provisioner.rescale(deployment.namespace, derive_name(deployment.name), replicas)

                # le cluster est déjà modifié : un échec ici laisse la configuration en retard
                configuration = copy.deepcopy(deployment.configuration or {})
                configuration["replicas"] = replicas
                return repo.update(deployment_id, {"configuration": configuration})

    def restart_deployment(self, deployment_id: str) -> Deployment:
        with self.locks.hold(deployment_id):
            deployment = self.get_deployment(deployment_id)
            self._require_running(deployment, "restart")
            self.provisioner.trigger_restart(deployment.namespace, derive_name(deployment.name))
            return deployment

    def delete_deployment(self, deployment_id: str) -> None:
        """Annule la création en cours, supprime les ressources puis l'enregistrement.

        Si la suppression des ressources échoue, l'enregistrement est conservé
        pour permettre une nouvelle tentative.
        """
        self.get_deployment(deployment_id)
        # la tâche de fond prend le verrou pendant le provisionnement : attendre hors verrou
        self.supervisor.cancel(deployment_id, wait=True)

        with self.locks.hold(deployment_id):
            with self._repository() as repo:
                deployment = self._get_or_raise(repo, deployment_id)
                self.provisioner.teardown(deployment.namespace, deployment.name)
                repo.update_status(deployment_id, DeploymentStatus.STOPPED)
                repo.delete(deployment_id)
        self.locks.discard(deployment_id)
        logger.info(f"Déploiement {deployment_id} supprimé")

    def retry_deployment(self, deployment_id: str) -> Deployment:
        with self.locks.hold(deployment_id):
            with self._repository() as repo:
                deployment = self._get_or_raise(repo, deployment_id)
                if deployment.status != DeploymentStatus.FAILED:
                    raise ConflictError(
                        f"only failed deployments can be retried (status: {deployment.status.value})"
                    )
                repo.update(deployment_id, {"status": DeploymentStatus.PENDING, "last_error": None})

            logger.info(f"Nouvelle tentative pour le déploiement {deployment_id}")
            return self._launch(deployment_id)

    def cancel_deployment(self, deployment_id: str) -> Deployment:
        deployment = self.get_deployment(deployment_id)
        if not self.supervisor.cancel(deployment_id):
            raise ConflictError(f"no creation in progress for deployment {deployment_id}")
        return deployment
