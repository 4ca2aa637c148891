from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from app.api.schemas.k8s import (
    ClusterInfoResponse,
    EventResponse,
    NodeResponse,
    PodListResponse,
    PodLogsResponse,
    PodResponse,
    ServiceListResponse,
)
from app.services.k8s_service import K8sService
from app.dependencies import get_k8s_service
from app.api.auth import get_current_user_id

router = APIRouter(prefix="/k8s", tags=["kubernetes"])


@router.get("/cluster-info", response_model=ClusterInfoResponse)
def get_cluster_info(
    k8s_service: K8sService = Depends(get_k8s_service),
    user_id: str = Depends(get_current_user_id)
):
    """Récupère la version et la taille du cluster"""
    return k8s_service.get_cluster_info()


@router.get("/namespaces", response_model=List[str])
def get_namespaces(
    k8s_service: K8sService = Depends(get_k8s_service),
    user_id: str = Depends(get_current_user_id)
):
    """Récupère la liste des namespaces"""
    return k8s_service.get_namespaces()


@router.get("/pods", response_model=PodListResponse)
def get_pods(
    namespace: Optional[str] = None,
    all_namespaces: bool = False,
    k8s_service: K8sService = Depends(get_k8s_service),
    user_id: str = Depends(get_current_user_id)
):
    """Récupère les pods avec métadonnées détaillées"""
    return k8s_service.get_pods(namespace, all_namespaces)


@router.get("/pods/{namespace}/{name}", response_model=PodResponse)
def get_pod(
    namespace: str,
    name: str,
    k8s_service: K8sService = Depends(get_k8s_service),
    user_id: str = Depends(get_current_user_id)
):
    return k8s_service.get_pod(namespace, name)


@router.get("/pods/{namespace}/{name}/logs", response_model=PodLogsResponse)
def get_pod_logs(
    namespace: str,
    name: str,
    tail_lines: int = Query(100, ge=1, le=5000),
    k8s_service: K8sService = Depends(get_k8s_service),
    user_id: str = Depends(get_current_user_id)
):
    """Récupère les dernières lignes de logs d'un pod"""
    return k8s_service.get_pod_logs(namespace, name, tail_lines)


@router.get("/services", response_model=ServiceListResponse)
def get_services(
    namespace: Optional[str] = None,
    k8s_service: K8sService = Depends(get_k8s_service),
    user_id: str = Depends(get_current_user_id)
):
    return k8s_service.get_services(namespace)


@router.get("/nodes", response_model=List[NodeResponse])
def get_nodes(
    k8s_service: K8sService = Depends(get_k8s_service),
    user_id: str = Depends(get_current_user_id)
):
    return k8s_service.get_nodes()


@router.get("/events", response_model=List[EventResponse])
def get_events(
    namespace: Optional[str] = None,
    k8s_service: K8sService = Depends(get_k8s_service),
    user_id: str = Depends(get_current_user_id)
):
    """Récupère les événements récents d'un namespace"""
    return k8s_service.get_events(namespace)
