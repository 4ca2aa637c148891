from fastapi import APIRouter, Depends, Header, Query, status
from typing import List, Dict, Optional

from app.api.auth import get_current_user_id
from app.api.schemas.deployment import (
    DeploymentMetrics,
    DeploymentRequest,
    DeploymentResponse,
    DeploymentUpdateRequest,
    MessageResponse,
    ScaleRequest,
)
from app.dependencies import get_deployment_service, get_github_account_service, get_reconciliation_service
from app.models.deployment import DeploymentStatus
from app.services.deployment_service import DeploymentService
from app.services.github_account_service import GitHubAccountService
from app.services.reconciliation_service import ReconciliationService

router = APIRouter(prefix="/deployments", tags=["deployments"])

# Les routes sont synchrones : FastAPI les exécute dans son pool de threads,
# les appels Kubernetes, GitHub et SQLAlchemy étant bloquants.


@router.post("", response_model=DeploymentResponse, status_code=status.HTTP_201_CREATED)
def create_deployment(
        request: DeploymentRequest,
        node_id: str,
        github_token: str = Header("", alias="X-GitHub-Token"),
        service: DeploymentService = Depends(get_deployment_service),
        accounts: GitHubAccountService = Depends(get_github_account_service),
        user_id: str = Depends(get_current_user_id)
):
    """Crée un déploiement ; le provisionnement continue en arrière-plan.

    Sans en-tête X-GitHub-Token, le token enregistré par l'utilisateur est utilisé.
    """
    token = accounts.find_token(user_id, github_token)
    return service.create_deployment(user_id, node_id, request, token)


@router.get("", response_model=List[DeploymentResponse])
def list_my_deployments(
        service: DeploymentService = Depends(get_deployment_service),
        user_id: str = Depends(get_current_user_id)
):
    return service.list_by_user(user_id)


@router.get("/all", response_model=List[DeploymentResponse])
def list_all_deployments(
        status_filter: Optional[DeploymentStatus] = Query(None, alias="status"),
        node_id: Optional[str] = None,
        user_id: Optional[str] = None,
        service: DeploymentService = Depends(get_deployment_service),
        current_user_id: str = Depends(get_current_user_id)
):
    """Liste tous les déploiements, filtrés par statut, noeud ou utilisateur"""
    return service.list_all({"status": status_filter, "node_id": node_id, "user_id": user_id})


@router.get("/node/{node_id}", response_model=List[DeploymentResponse])
def list_node_deployments(
        node_id: str,
        service: DeploymentService = Depends(get_deployment_service),
        user_id: str = Depends(get_current_user_id)
):
    return service.list_by_node(node_id)


@router.get("/stats", response_model=Dict[str, int])
def get_deployment_stats(
        node_id: Optional[str] = None,
        service: DeploymentService = Depends(get_deployment_service),
        user_id: str = Depends(get_current_user_id)
):
    """Nombre de déploiements par statut"""
    return service.get_stats(node_id)


@router.get("/{deployment_id}", response_model=DeploymentResponse)
def get_deployment(
        deployment_id: str,
        service: DeploymentService = Depends(get_deployment_service),
        user_id: str = Depends(get_current_user_id)
):
    return service.get_deployment(deployment_id)


@router.put("/{deployment_id}", response_model=DeploymentResponse)
def update_deployment(
        deployment_id: str,
        changes: DeploymentUpdateRequest,
        service: DeploymentService = Depends(get_deployment_service),
        user_id: str = Depends(get_current_user_id)
):
    return service.update_deployment(deployment_id, changes)


@router.delete("/{deployment_id}", response_model=MessageResponse)
def delete_deployment(
        deployment_id: str,
        service: DeploymentService = Depends(get_deployment_service),
        user_id: str = Depends(get_current_user_id)
):
    """Supprime les ressources du cluster puis l'enregistrement"""
    service.delete_deployment(deployment_id)
    return MessageResponse(message="Deployment deleted successfully")


@router.post("/{deployment_id}/restart", response_model=MessageResponse)
def restart_deployment(
        deployment_id: str,
        service: DeploymentService = Depends(get_deployment_service),
        user_id: str = Depends(get_current_user_id)
):
    service.restart_deployment(deployment_id)
    return MessageResponse(message="Deployment restarted successfully")


@router.post("/{deployment_id}/scale", response_model=DeploymentResponse)
def scale_deployment(
        deployment_id: str,
        scale: ScaleRequest,
        service: DeploymentService = Depends(get_deployment_service),
        user_id: str = Depends(get_current_user_id)
):
    return service.scale_deployment(deployment_id, scale.replicas)


@router.post("/{deployment_id}/retry", response_model=DeploymentResponse)
def retry_deployment(
        deployment_id: str,
        service: DeploymentService = Depends(get_deployment_service),
        user_id: str = Depends(get_current_user_id)
):
    """Relance la création d'un déploiement en échec"""
    return service.retry_deployment(deployment_id)


@router.post("/{deployment_id}/cancel", response_model=MessageResponse)
def cancel_deployment(
        deployment_id: str,
        service: DeploymentService = Depends(get_deployment_service),
        user_id: str = Depends(get_current_user_id)
):
    service.cancel_deployment(deployment_id)
    return MessageResponse(message="Cancellation requested")


@router.post("/{deployment_id}/reconcile", response_model=DeploymentMetrics)
def reconcile_deployment(
        deployment_id: str,
        reconciliation: ReconciliationService = Depends(get_reconciliation_service),
        user_id: str = Depends(get_current_user_id)
):
    """Recalcule les métriques du déploiement à partir des pods observés"""
    return reconciliation.reconcile(deployment_id)
