from datetime import datetime
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from app.models.node import NodeStatus


class NodeLocation(BaseModel):
    latitude: float = 0.0
    longitude: float = 0.0
    city: str = ""
    country: str = ""
    region: str = ""
    timezone: str = ""


class NodeClusterInfo(BaseModel):
    cluster_name: str = ""
    kube_version: str = ""
    provider: str = ""  # kind, minikube, eks, gke...
    nodes_count: int = 0
    namespaces_count: int = 0


class NodeResources(BaseModel):
    cpu_cores: int = 0
    cpu_usage: float = 0.0  # pourcentage
    memory_total: int = 0  # octets
    memory_used: int = 0
    memory_usage: float = 0.0
    disk_total: int = 0
    disk_used: int = 0
    disk_usage: float = 0.0
    pods_running: int = 0
    pods_capacity: int = 0


class NodeMetadata(BaseModel):
    os_type: str = ""
    architecture: str = ""
    hostname: str = ""
    kernel_version: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)


class NodeRegistrationRequest(BaseModel):
    node_name: str = ""
    mac_address: str = ""
    public_ip: str = ""
    private_ip: str = ""
    location: NodeLocation = Field(default_factory=NodeLocation)
    cluster_info: NodeClusterInfo = Field(default_factory=NodeClusterInfo)
    resources: NodeResources = Field(default_factory=NodeResources)
    node_metadata: NodeMetadata = Field(default_factory=NodeMetadata)


class NodeUpdateRequest(BaseModel):
    status: Optional[NodeStatus] = None
    location: Optional[NodeLocation] = None
    resources: Optional[NodeResources] = None
    cluster_info: Optional[NodeClusterInfo] = None


class NodeResponse(BaseModel):
    id: str
    node_name: str
    mac_address: str
    public_ip: Optional[str] = None
    private_ip: Optional[str] = None
    status: NodeStatus
    location: NodeLocation
    cluster_info: NodeClusterInfo
    resources: NodeResources
    node_metadata: NodeMetadata
    created_at: datetime
    updated_at: datetime
    last_seen_at: datetime

    class Config:
        from_attributes = True
