from pydantic import BaseModel
from typing import List, Optional, Dict


class ClusterInfoResponse(BaseModel):
    version: str
    platform: Optional[str]
    nodes_count: int
    namespaces_count: int
    pods_count: int


class ContainerInfo(BaseModel):
    name: str
    image: str
    ready: bool
    restart_count: int = 0


class PodResponse(BaseModel):
    name: str
    namespace: str
    status: str
    node: Optional[str]
    pod_ip: Optional[str] = None
    labels: Dict[str, str] = {}
    created: Optional[str]
    containers: List[ContainerInfo]


class PodListResponse(BaseModel):
    namespace: Optional[str]
    pods: List[PodResponse]
    total_count: int
    status_summary: Dict[str, int]


class PodLogsResponse(BaseModel):
    namespace: str
    pod: str
    tail_lines: int
    logs: str


class ServicePortInfo(BaseModel):
    port: int
    target_port: Optional[str]
    protocol: str


class ServiceResponse(BaseModel):
    name: str
    namespace: str
    type: str
    cluster_ip: Optional[str]
    selector: Dict[str, str] = {}
    ports: List[ServicePortInfo]
    created: Optional[str]


class ServiceListResponse(BaseModel):
    namespace: str
    services: List[ServiceResponse]
    total_count: int


class NodeResponse(BaseModel):
    name: str
    ready: bool
    kubelet_version: Optional[str]
    os_image: Optional[str]
    capacity: Dict[str, str]
    labels: Dict[str, str]
    created: Optional[str]


class EventResponse(BaseModel):
    type: Optional[str]
    reason: Optional[str]
    message: Optional[str]
    object: Optional[str]
    count: int
    last_timestamp: Optional[str]


class PodMetricsResponse(BaseModel):
    name: str
    namespace: str
    status: str
    restart_count: int
    age: str
    cpu_usage: str
    memory_usage: str


class ClusterMetricsResponse(BaseModel):
    total_nodes: int
    total_pods: int
    running_pods: int
    pending_pods: int
    failed_pods: int
    total_cpu: str
    total_memory: str
    cpu_usage_percent: float
    memory_usage_percent: float
    namespaces_count: int


class DeploymentMetricsResponse(BaseModel):
    name: str
    namespace: str
    desired_replicas: int
    current_replicas: int
    available_replicas: int
    ready_replicas: int
    pods: List[PodMetricsResponse]
    status: str
