from dataclasses import dataclass
from typing import Optional

from app.api.schemas.deployment import DeploymentConfiguration


@dataclass(frozen=True)
class DeploymentPolicy:
    """Valeurs par défaut appliquées à toute configuration de déploiement"""
    namespace: str = "espaze-node-deployer-apps"
    replicas: int = 2
    memory_request: str = "256Mi"
    memory_limit: str = "512Mi"
    cpu_request: str = "250m"
    cpu_limit: str = "500m"
    container_port: int = 8080
    service_port: int = 80
    image_pull_policy: str = "IfNotPresent"
    restart_policy: str = "Always"
    image_tag: str = "latest"

    @classmethod
    def from_settings(cls, settings) -> "DeploymentPolicy":
        return cls(
            namespace=settings.DEFAULT_NAMESPACE,
            replicas=settings.DEFAULT_REPLICAS,
            memory_request=settings.DEFAULT_MEMORY_REQUEST,
            memory_limit=settings.DEFAULT_MEMORY_LIMIT,
            cpu_request=settings.DEFAULT_CPU_REQUEST,
            cpu_limit=settings.DEFAULT_CPU_LIMIT,
            container_port=settings.DEFAULT_CONTAINER_PORT,
            service_port=settings.DEFAULT_SERVICE_PORT,
            image_pull_policy=settings.DEFAULT_IMAGE_PULL_POLICY,
            restart_policy=settings.DEFAULT_RESTART_POLICY,
            image_tag=settings.DEFAULT_IMAGE_TAG,
        )

    def resolve_namespace(self, namespace: Optional[str]) -> str:
        return namespace or self.namespace

    def resolve(self, configuration: Optional[DeploymentConfiguration], owner: str, repo: str,
                dockerfile_path: Optional[str] = None) -> DeploymentConfiguration:
        """Fusionne la configuration de l'appelant avec les valeurs par défaut.

        Un champ est considéré absent s'il vaut None ou la valeur nulle de son type
        (0, chaîne vide), comme le formulaire web l'envoie.
        """
        resolved = (configuration or DeploymentConfiguration()).model_copy(deep=True)

        resolved.replicas = resolved.replicas or self.replicas
        resolved.memory_request = resolved.memory_request or self.memory_request
        resolved.memory_limit = resolved.memory_limit or self.memory_limit
        resolved.cpu_request = resolved.cpu_request or self.cpu_request
        resolved.cpu_limit = resolved.cpu_limit or self.cpu_limit
        resolved.container_port = resolved.container_port or self.container_port
        resolved.service_port = resolved.service_port or self.service_port
        resolved.image_pull_policy = resolved.image_pull_policy or self.image_pull_policy
        resolved.restart_policy = resolved.restart_policy or self.restart_policy

        if resolved.health_check.enabled and not resolved.health_check.port:
            resolved.health_check.port = resolved.container_port

        build = resolved.build_config
        build.dockerfile = build.dockerfile or dockerfile_path
        build.image_name = build.image_name or f"{owner}/{repo}"
        build.image_tag = build.image_tag or self.image_tag

        return resolved
