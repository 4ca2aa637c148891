import logging
import threading
from datetime import datetime, timezone
from functools import partial
from typing import Callable, Dict, List, Optional, Tuple

from kubernetes import client
from kubernetes.client.exceptions import ApiException
from kubernetes.utils import parse_quantity

from app.api.schemas.deployment import ClusterInfo, DeploymentConfiguration, HealthCheckConfig
from app.core.exceptions import ProvisioningCancelled, UpstreamError, ValidationError
from app.core.naming import config_map_name, derive_name, ingress_name, label_value, service_name
from app.external.k8s_client import K8sClient
from app.models.deployment import Deployment

logger = logging.getLogger(__name__)

RESTART_ANNOTATION = "kubectl.kubernetes.io/restartedAt"
READINESS_INITIAL_DELAY_SECONDS = 5


def validate_resources(configuration: DeploymentConfiguration) -> None:
    """Vérifie que les quantités CPU/mémoire sont lisibles par Kubernetes"""
    for field in ("memory_request", "memory_limit", "cpu_request", "cpu_limit"):
        value = getattr(configuration, field)
        try:
            parse_quantity(value)
        except (ValueError, TypeError) as e:
            raise ValidationError(f"invalid {field}: {value!r}") from e


class ResourceProvisioner:
    """Crée, supprime et modifie les objets Kubernetes d'un déploiement.

    Chaque étape réussie de ``provision`` empile une action de compensation ;
    en cas d'échec la pile est déroulée en sens inverse avant de lever l'erreur,
    de sorte qu'aucun objet orphelin ne reste dans le cluster.
    """

    def __init__(self, k8s_client: K8sClient, managed_by: str = "espaze-node-deployer",
                 public_base_url: str = "http://localhost", ingress_class_name: Optional[str] = None):
        self.k8s_client = k8s_client
        self.managed_by = managed_by
        self.public_base_url = public_base_url.rstrip("/")
        self.ingress_class_name = ingress_class_name

    def provision(self, deployment: Deployment,
                  cancel_event: Optional[threading.Event] = None) -> ClusterInfo:
        name = derive_name(deployment.name)
        if not name:
            raise ValidationError(f"deployment name {deployment.name!r} has no usable characters")

        namespace = deployment.namespace
        configuration = DeploymentConfiguration.model_validate(deployment.configuration or {})
        repo_full_name = (deployment.source_snapshot or {}).get("full_name", "")
        info = ClusterInfo()
        compensations: List[Tuple[str, Callable[[], object]]] = []

        logger.info(f"Provisionnement de {name} dans le namespace {namespace}")
        try:
            self._ensure_namespace(namespace)

            if configuration.environment_vars:
                self._check_cancelled(cancel_event)
                cm_name = config_map_name(name)
                self._call("create configmap", self.k8s_client.create_config_map,
                           namespace, self._build_config_map(name, configuration.environment_vars))
                compensations.append((cm_name, partial(self.k8s_client.delete_config_map, namespace, cm_name)))
                info.configmap_name = cm_name

            self._check_cancelled(cancel_event)
            self._call("create deployment", self.k8s_client.create_deployment,
                       namespace, self._build_deployment(name, configuration, repo_full_name))
            compensations.append((name, partial(self.k8s_client.delete_deployment, namespace, name)))
            info.deployment_name = name

            self._check_cancelled(cancel_event)
            svc_name = service_name(name)
            self._call("create service", self.k8s_client.create_service,
                       namespace, self._build_service(name, configuration))
            compensations.append((svc_name, partial(self.k8s_client.delete_service, namespace, svc_name)))
            info.service_name = svc_name
            info.internal_url = (
                f"http://{svc_name}.{namespace}.svc.cluster.local:{configuration.service_port}"
            )
            info.pod_selector = f"app={name}"

            if deployment.context_path:
                self._check_cancelled(cancel_event)
                ing_name = ingress_name(name)
                self._call("create ingress", self.k8s_client.create_ingress,
                           namespace, self._build_ingress(name, deployment.context_path, configuration))
                compensations.append((ing_name, partial(self.k8s_client.delete_ingress, namespace, ing_name)))
                info.ingress_name = ing_name
                info.url = f"{self.public_base_url}{deployment.context_path}"
        except UpstreamError as e:
            failures = self._compensate(compensations)
            if failures:
                raise type(e)(f"{e.message}; rollback incomplete for: {', '.join(failures)}") from e
            raise

        logger.info(f"Ressources de {name} créées: {info.model_dump(exclude_defaults=True)}")
        return info

    def teardown(self, namespace: str, name: str) -> None:
        """Supprime les objets du déploiement en ordre inverse de création.

        Les objets absents sont ignorés ; les autres erreurs n'interrompent pas
        la suppression des objets restants mais sont remontées à la fin.
        """
        name = derive_name(name)
        steps = [
            ("ingress", ingress_name(name), self.k8s_client.delete_ingress),
            ("service", service_name(name), self.k8s_client.delete_service),
            ("deployment", name, self.k8s_client.delete_deployment),
            ("configmap", config_map_name(name), self.k8s_client.delete_config_map),
        ]
        errors = []
        for kind, resource_name, delete in steps:
            try:
                delete(namespace, resource_name)
                logger.info(f"{kind} {resource_name} supprimé du namespace {namespace}")
            except ApiException as e:
                if e.status == 404:
                    continue
                logger.error(f"Erreur lors de la suppression du {kind} {resource_name}: {e.reason}")
                errors.append(f"{kind} {resource_name} ({e.status} {e.reason})")

        if errors:
            raise UpstreamError(f"failed to delete resources: {'; '.join(errors)}")

    def rescale(self, namespace: str, name: str, replicas: int) -> None:
        workload = self._call("read deployment", self.k8s_client.read_deployment, namespace, name)
        workload.spec.replicas = replicas
        self._call("scale deployment", self.k8s_client.replace_deployment, namespace, name, workload)
        logger.info(f"Deployment {namespace}/{name} mis à l'échelle: {replicas} réplicas")

    def trigger_restart(self, namespace: str, name: str) -> None:
        workload = self._call("read deployment", self.k8s_client.read_deployment, namespace, name)
        template_meta = workload.spec.template.metadata
        if template_meta is None:
            template_meta = workload.spec.template.metadata = client.V1ObjectMeta()
        annotations = dict(template_meta.annotations or {})
        annotations[RESTART_ANNOTATION] = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        template_meta.annotations = annotations
        self._call("restart deployment", self.k8s_client.replace_deployment, namespace, name, workload)
        logger.info(f"Redémarrage du deployment {namespace}/{name} demandé")

    # Étapes internes

    def _ensure_namespace(self, namespace: str) -> None:
        try:
            self.k8s_client.read_namespace(namespace)
            return
        except ApiException as e:
            if e.status != 404:
                raise UpstreamError(f"failed to read namespace: ({e.status}) {e.reason}") from e

        try:
            self.k8s_client.create_namespace(namespace, {"managed-by": self.managed_by})
            logger.info(f"Namespace {namespace} créé")
        except ApiException as e:
            # créé entre la lecture et la création
            if e.status != 409:
                raise UpstreamError(f"failed to create namespace: ({e.status}) {e.reason}") from e

    @staticmethod
    def _call(operation: str, func: Callable, *args):
        try:
            return func(*args)
        except ApiException as e:
            raise UpstreamError(f"failed to {operation}: ({e.status}) {e.reason}") from e

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise ProvisioningCancelled("cancelled")

    @staticmethod
    def _compensate(compensations: List[Tuple[str, Callable[[], object]]]) -> List[str]:
        failures = []
        for resource_name, undo in reversed(compensations):
            try:
                undo()
                logger.info(f"Compensation: {resource_name} supprimé")
            except ApiException as e:
                if e.status == 404:
                    continue
                logger.error(f"Compensation impossible pour {resource_name}: {e.reason}")
                failures.append(resource_name)
        return failures

    # Construction des objets

    def _labels(self, name: str) -> Dict[str, str]:
        return {"app": name, "managed-by": self.managed_by}

    def _build_config_map(self, name: str, data: Dict[str, str]) -> client.V1ConfigMap:
        return client.V1ConfigMap(
            metadata=client.V1ObjectMeta(name=config_map_name(name), labels=self._labels(name)),
            data=dict(data),
        )

    def _build_deployment(self, name: str, configuration: DeploymentConfiguration,
                          repo_full_name: str) -> client.V1Deployment:
        build = configuration.build_config
        labels = self._labels(name)
        if repo_full_name:
            labels["repo"] = label_value(repo_full_name)

        container = client.V1Container(
            name=name,
            image=f"{build.image_name}:{build.image_tag}",
            image_pull_policy=configuration.image_pull_policy,
            ports=[client.V1ContainerPort(container_port=configuration.container_port, protocol="TCP")],
            env=[client.V1EnvVar(name=key, value=value)
                 for key, value in configuration.environment_vars.items()] or None,
            resources=client.V1ResourceRequirements(
                requests={"memory": configuration.memory_request, "cpu": configuration.cpu_request},
                limits={"memory": configuration.memory_limit, "cpu": configuration.cpu_limit},
            ),
        )

        health = configuration.health_check
        if health.enabled:
            container.liveness_probe = self._build_health_check(health, health.initial_delay_seconds,
                                                         configuration.container_port)
            container.readiness_probe = self._build_health_check(health, READINESS_INITIAL_DELAY_SECONDS,
                                                          configuration.container_port)

        return client.V1Deployment(
            metadata=client.V1ObjectMeta(name=name, labels=labels),
            spec=client.V1DeploymentSpec(
                replicas=configuration.replicas,
                selector=client.V1LabelSelector(match_labels={"app": name}),
                template=client.V1PodTemplateSpec(
                    metadata=client.V1ObjectMeta(labels={"app": name}),
                    spec=client.V1PodSpec(
                        containers=[container],
                        restart_policy=configuration.restart_policy,
                    ),
                ),
            ),
        )

    @staticmethod
    def _build_health_check(health: HealthCheckConfig, initial_delay: int, default_port: int) -> client.V1Probe:
        return client.V1Probe(
            http_get=client.V1HTTPGetAction(path=health.path, port=health.port or default_port),
            initial_delay_seconds=initial_delay,
            period_seconds=health.period_seconds,
            timeout_seconds=health.timeout_seconds,
            success_threshold=health.success_threshold,
            failure_threshold=health.failure_threshold,
        )

    def _build_service(self, name: str, configuration: DeploymentConfiguration) -> client.V1Service:
        return client.V1Service(
            metadata=client.V1ObjectMeta(name=service_name(name), labels=self._labels(name)),
            spec=client.V1ServiceSpec(
                selector={"app": name},
                ports=[client.V1ServicePort(
                    protocol="TCP",
                    port=configuration.service_port,
                    target_port=configuration.container_port,
                )],
                type="ClusterIP",
            ),
        )

    def _build_ingress(self, name: str, path: str, configuration: DeploymentConfiguration) -> client.V1Ingress:
        backend = client.V1IngressBackend(
            service=client.V1IngressServiceBackend(
                name=service_name(name),
                port=client.V1ServiceBackendPort(number=configuration.service_port),
            )
        )
        return client.V1Ingress(
            metadata=client.V1ObjectMeta(
                name=ingress_name(name),
                labels=self._labels(name),
                annotations={"nginx.ingress.kubernetes.io/rewrite-target": "/"},
            ),
            spec=client.V1IngressSpec(
                ingress_class_name=self.ingress_class_name,
                rules=[client.V1IngressRule(
                    http=client.V1HTTPIngressRuleValue(paths=[
                        client.V1HTTPIngressPath(path=path, path_type="Prefix", backend=backend)
                    ])
                )],
            ),
        )
