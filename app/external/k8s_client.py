from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException
import logging
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS = 5


class K8sClient:
    """Accès bas niveau à l'API Kubernetes.

    Les méthodes laissent remonter ``kubernetes.client.exceptions.ApiException`` :
    c'est aux services de décider si une erreur est fatale.
    """

    def __init__(self, kubeconfig: Optional[str] = None):
        try:
            config.load_incluster_config()
        except ConfigException:
            try:
                config.load_kube_config(config_file=kubeconfig)
            except Exception as e:
                logger.error(f"Impossible de charger la configuration Kubernetes: {e}")
                raise

        self.v1 = client.CoreV1Api()
        self.apps_v1 = client.AppsV1Api()
        self.networking_v1 = client.NetworkingV1Api()
        self.version_api = client.VersionApi()

        # Seul appel borné dans le temps : la vérification de connexion initiale
        self.v1.list_namespace(limit=1, _request_timeout=CONNECT_TIMEOUT_SECONDS)
        logger.info("Client Kubernetes initialisé avec succès")

    # Namespaces
    def read_namespace(self, name: str):
        return self.v1.read_namespace(name)

    def create_namespace(self, name: str, labels: Dict[str, str]):
        body = client.V1Namespace(metadata=client.V1ObjectMeta(name=name, labels=labels))
        return self.v1.create_namespace(body)

    def list_namespaces(self) -> List:
        return self.v1.list_namespace().items

    # ConfigMaps
    def create_config_map(self, namespace: str, body: client.V1ConfigMap):
        return self.v1.create_namespaced_config_map(namespace, body)

    def delete_config_map(self, namespace: str, name: str):
        return self.v1.delete_namespaced_config_map(name, namespace)

    # Deployments
    def create_deployment(self, namespace: str, body: client.V1Deployment):
        return self.apps_v1.create_namespaced_deployment(namespace, body)

    def read_deployment(self, namespace: str, name: str):
        return self.apps_v1.read_namespaced_deployment(name, namespace)

    def replace_deployment(self, namespace: str, name: str, body: client.V1Deployment):
        return self.apps_v1.replace_namespaced_deployment(name, namespace, body)

    def delete_deployment(self, namespace: str, name: str):
        return self.apps_v1.delete_namespaced_deployment(
            name, namespace, body=client.V1DeleteOptions(propagation_policy="Foreground")
        )

    # Services
    def create_service(self, namespace: str, body: client.V1Service):
        return self.v1.create_namespaced_service(namespace, body)

    def delete_service(self, namespace: str, name: str):
        return self.v1.delete_namespaced_service(name, namespace)

    def list_services(self, namespace: str) -> List:
        return self.v1.list_namespaced_service(namespace).items

    # Ingresses
    def create_ingress(self, namespace: str, body: client.V1Ingress):
        return self.networking_v1.create_namespaced_ingress(namespace, body)

    def delete_ingress(self, namespace: str, name: str):
        return self.networking_v1.delete_namespaced_ingress(
            name, namespace, body=client.V1DeleteOptions(propagation_policy="Foreground")
        )

    # Pods
    def list_pods(self, namespace: Optional[str] = None) -> List:
        if namespace:
            return self.v1.list_namespaced_pod(namespace).items
        return self.v1.list_pod_for_all_namespaces().items

    def read_pod(self, namespace: str, name: str):
        return self.v1.read_namespaced_pod(name, namespace)

    def read_pod_logs(self, namespace: str, name: str, tail_lines: int = 100) -> str:
        return self.v1.read_namespaced_pod_log(name, namespace, tail_lines=tail_lines)

    # Cluster
    def list_nodes(self) -> List:
        return self.v1.list_node().items

    def list_events(self, namespace: Optional[str] = None) -> List:
        if namespace:
            return self.v1.list_namespaced_event(namespace).items
        return self.v1.list_event_for_all_namespaces().items

    def get_server_version(self):
        return self.version_api.get_code()
