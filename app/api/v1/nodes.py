from fastapi import APIRouter, Depends, Query, status
from typing import List, Dict, Optional

from app.api.auth import get_current_user_id
from app.api.schemas.deployment import MessageResponse
from app.api.schemas.node import NodeRegistrationRequest, NodeResponse, NodeUpdateRequest
from app.dependencies import get_node_service
from app.models.node import NodeStatus
from app.services.node_service import NodeService

router = APIRouter(prefix="/nodes", tags=["nodes"])


# Enregistrement et signe de vie : appelés par les machines elles-mêmes, sans JWT
@router.post("/register", response_model=NodeResponse, status_code=status.HTTP_201_CREATED)
def register_node(
        request: NodeRegistrationRequest,
        service: NodeService = Depends(get_node_service)
):
    return service.register_node(request)


@router.post("/{node_id}/heartbeat", response_model=MessageResponse)
def heartbeat(
        node_id: str,
        service: NodeService = Depends(get_node_service)
):
    service.heartbeat(node_id)
    return MessageResponse(message="Heartbeat recorded")


@router.get("", response_model=List[NodeResponse])
def list_nodes(
        status_filter: Optional[NodeStatus] = Query(None, alias="status"),
        service: NodeService = Depends(get_node_service),
        user_id: str = Depends(get_current_user_id)
):
    return service.list_nodes({"status": status_filter})


@router.get("/stats", response_model=Dict[str, int])
def get_node_stats(
        service: NodeService = Depends(get_node_service),
        user_id: str = Depends(get_current_user_id)
):
    """Nombre de noeuds par statut"""
    return service.get_stats()


@router.get("/{node_id}", response_model=NodeResponse)
def get_node(
        node_id: str,
        service: NodeService = Depends(get_node_service),
        user_id: str = Depends(get_current_user_id)
):
    return service.get_node(node_id)


@router.put("/{node_id}", response_model=NodeResponse)
def update_node(
        node_id: str,
        changes: NodeUpdateRequest,
        service: NodeService = Depends(get_node_service),
        user_id: str = Depends(get_current_user_id)
):
    return service.update_node(node_id, changes)


@router.delete("/{node_id}", response_model=MessageResponse)
def delete_node(
        node_id: str,
        service: NodeService = Depends(get_node_service),
        user_id: str = Depends(get_current_user_id)
):
    service.delete_node(node_id)
    return MessageResponse(message="Node deleted successfully")


@router.post("/{node_id}/resources", response_model=NodeResponse)
def refresh_node_resources(
        node_id: str,
        service: NodeService = Depends(get_node_service),
        user_id: str = Depends(get_current_user_id)
):
    """Relève la capacité du cluster et la rattache au noeud"""
    return service.update_node_resources(node_id)
