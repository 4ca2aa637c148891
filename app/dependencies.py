from functools import lru_cache

from app.config import settings
from app.core.database import db_manager
from app.core.locks import KeyedLock
from app.external.github_client import GitHubClient
from app.external.k8s_client import K8sClient
from app.services.deployment_policy import DeploymentPolicy
from app.services.deployment_service import DeploymentService
from app.services.github_account_service import GitHubAccountService
from app.services.k8s_service import K8sService
from app.services.metrics_service import MetricsService
from app.services.node_service import NodeService
from app.services.provisioner import ResourceProvisioner
from app.services.reconciliation_service import ReconciliationService
from app.workers.deployment_supervisor import DeploymentSupervisor


# === CLIENTS EXTERNES ===
@lru_cache()
def get_k8s_client() -> K8sClient:
    return K8sClient(kubeconfig=settings.KUBECONFIG)


@lru_cache()
def get_github_client() -> GitHubClient:
    return GitHubClient(base_url=settings.GITHUB_API_URL, timeout=settings.GITHUB_TIMEOUT)


# === WORKERS ===
@lru_cache()
def get_deployment_supervisor() -> DeploymentSupervisor:
    """Superviseur des tâches de création (singleton)"""
    return DeploymentSupervisor(max_workers=settings.SUPERVISOR_MAX_WORKERS)


# === SERVICES ===
@lru_cache()
def get_provisioner() -> ResourceProvisioner:
    return ResourceProvisioner(
        k8s_client=get_k8s_client(),
        managed_by=settings.MANAGED_BY,
        public_base_url=settings.PUBLIC_BASE_URL,
        ingress_class_name=settings.INGRESS_CLASS_NAME
    )


@lru_cache()
def get_deployment_service() -> DeploymentService:
    """Service de cycle de vie (singleton : il porte les verrous par déploiement)"""
    return DeploymentService(
        session_factory=db_manager.get_session,
        github_client=get_github_client(),
        provisioner=get_provisioner(),
        supervisor=get_deployment_supervisor(),
        policy=DeploymentPolicy.from_settings(settings),
        build_delay=settings.BUILD_DELAY_SECONDS,
        locks=KeyedLock()
    )


@lru_cache()
def get_reconciliation_service() -> ReconciliationService:
    return ReconciliationService(session_factory=db_manager.get_session, k8s_client=get_k8s_client())


def get_k8s_service() -> K8sService:
    return K8sService(get_k8s_client(), default_namespace=settings.DEFAULT_NAMESPACE)


def get_metrics_service() -> MetricsService:
    return MetricsService(get_k8s_client(), default_namespace=settings.DEFAULT_NAMESPACE)


@lru_cache()
def get_node_service() -> NodeService:
    return NodeService(session_factory=db_manager.get_session, k8s_client=get_k8s_client())


@lru_cache()
def get_github_account_service() -> GitHubAccountService:
    return GitHubAccountService(session_factory=db_manager.get_session, github_client=get_github_client())
