from datetime import datetime
from pydantic import BaseModel, Field
from typing import Dict, Optional
from app.models.deployment import DeploymentStatus


class AutoScalingConfig(BaseModel):
    enabled: bool = False
    min_replicas: int = 1
    max_replicas: int = 5
    target_cpu_utilization: int = 80
    target_memory_utilization: int = 80


class HealthCheckConfig(BaseModel):
    enabled: bool = False
    path: str = "/health"
    port: Optional[int] = None  # port du conteneur si absent
    initial_delay_seconds: int = 30
    period_seconds: int = 10
    timeout_seconds: int = 5
    success_threshold: int = 1
    failure_threshold: int = 3


class BuildConfig(BaseModel):
    dockerfile: Optional[str] = None
    build_context: str = "."
    build_args: Dict[str, str] = Field(default_factory=dict)
    image_name: Optional[str] = None
    image_tag: Optional[str] = None
    registry_url: Optional[str] = None


class DeploymentConfiguration(BaseModel):
    """Configuration d'un déploiement ; les champs absents sont résolus par DeploymentPolicy"""
    replicas: Optional[int] = Field(default=None, ge=0)
    container_port: Optional[int] = Field(default=None, gt=0, le=65535)
    service_port: Optional[int] = Field(default=None, gt=0, le=65535)
    memory_request: Optional[str] = None
    memory_limit: Optional[str] = None
    cpu_request: Optional[str] = None
    cpu_limit: Optional[str] = None
    environment_vars: Dict[str, str] = Field(default_factory=dict)
    auto_scaling: AutoScalingConfig = Field(default_factory=AutoScalingConfig)
    health_check: HealthCheckConfig = Field(default_factory=HealthCheckConfig)
    image_pull_policy: Optional[str] = None
    restart_policy: Optional[str] = None
    build_config: BuildConfig = Field(default_factory=BuildConfig)


class GitHubRepositoryRef(BaseModel):
    owner: str = ""
    name: str = ""
    branch: str = ""


class SourceSnapshot(BaseModel):
    owner: str = ""
    name: str = ""
    full_name: str = ""
    branch: str = ""
    commit_sha: str = ""
    clone_url: str = ""
    private: bool = False
    language: Optional[str] = None
    description: Optional[str] = None


class ClusterInfo(BaseModel):
    deployment_name: str = ""
    service_name: str = ""
    ingress_name: str = ""
    configmap_name: str = ""
    url: str = ""
    internal_url: str = ""
    pod_selector: str = ""


class DeploymentMetrics(BaseModel):
    active_pods: int = 0
    desired_pods: int = 0
    ready_pods: int = 0
    cpu_usage: float = 0.0
    memory_usage: float = 0.0
    network_in: int = 0
    network_out: int = 0
    requests_per_min: int = 0
    error_rate: float = 0.0
    uptime: int = 0  # secondes
    last_restart_count: int = 0
    last_restart_time: Optional[datetime] = None


class DeploymentRequest(BaseModel):
    name: str = ""
    context_path: str = ""
    namespace: Optional[str] = None
    github_repo: GitHubRepositoryRef = Field(default_factory=GitHubRepositoryRef)
    configuration: DeploymentConfiguration = Field(default_factory=DeploymentConfiguration)


class DeploymentUpdateRequest(BaseModel):
    replicas: Optional[int] = Field(default=None, ge=0)
    environment_vars: Optional[Dict[str, str]] = None
    auto_scaling: Optional[AutoScalingConfig] = None


class ScaleRequest(BaseModel):
    replicas: int


class DeploymentResponse(BaseModel):
    id: str
    user_id: str
    node_id: str
    name: str
    context_path: str
    namespace: str
    status: DeploymentStatus
    last_error: Optional[str] = None
    attempts: int = 0
    source_snapshot: SourceSnapshot
    configuration: DeploymentConfiguration
    cluster_info: ClusterInfo
    metrics: DeploymentMetrics
    created_at: datetime
    updated_at: datetime
    deployed_at: Optional[datetime] = None
    last_health_check_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    message: str
