from fastapi import APIRouter, Depends
from typing import List, Optional
from app.api.schemas.k8s import ClusterMetricsResponse, DeploymentMetricsResponse, PodMetricsResponse
from app.services.metrics_service import MetricsService
from app.dependencies import get_metrics_service
from app.api.auth import get_current_user_id

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("/pods", response_model=List[PodMetricsResponse])
def get_pod_metrics(
    namespace: Optional[str] = None,
    metrics_service: MetricsService = Depends(get_metrics_service),
    user_id: str = Depends(get_current_user_id)
):
    return metrics_service.get_pod_metrics(namespace)


@router.get("/cluster", response_model=ClusterMetricsResponse)
def get_cluster_metrics(
    metrics_service: MetricsService = Depends(get_metrics_service),
    user_id: str = Depends(get_current_user_id)
):
    """Capacité du cluster et répartition des pods par phase"""
    return metrics_service.get_cluster_metrics()


@router.get("/deployments/{name}", response_model=DeploymentMetricsResponse)
def get_deployment_metrics(
    name: str,
    namespace: Optional[str] = None,
    metrics_service: MetricsService = Depends(get_metrics_service),
    user_id: str = Depends(get_current_user_id)
):
    return metrics_service.get_deployment_metrics(name, namespace)
