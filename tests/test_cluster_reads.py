from datetime import datetime, timedelta, timezone

import pytest
from kubernetes import client

from app.core.exceptions import NotFoundError, UpstreamError
from app.services.k8s_service import K8sService
from app.services.metrics_service import MetricsService, format_age
from tests.fakes import make_pod

NAMESPACE = "espaze-node-deployer-apps"


def make_node(name, cpu="4", memory="8Gi"):
    return client.V1Node(
        metadata=client.V1ObjectMeta(name=name),
        status=client.V1NodeStatus(
            capacity={"cpu": cpu, "memory": memory},
            conditions=[client.V1NodeCondition(type="Ready", status="True")],
        ),
    )


@pytest.fixture
def k8s_service(k8s_client):
    return K8sService(k8s_client)


@pytest.fixture
def metrics_service(k8s_client):
    return MetricsService(k8s_client)


def test_cluster_info(k8s_service, k8s_client):
    k8s_client.namespaces = {"default": {}, NAMESPACE: {}}
    k8s_client.nodes = [make_node("n1")]
    k8s_client.pods = {NAMESPACE: [make_pod("a-1"), make_pod("b-1")]}

    info = k8s_service.get_cluster_info()

    assert info == {
        "version": "v1.28.3",
        "platform": "linux/amd64",
        "nodes_count": 1,
        "namespaces_count": 2,
        "pods_count": 2,
    }


def test_pods_default_to_apps_namespace(k8s_service, k8s_client):
    k8s_client.pods = {NAMESPACE: [make_pod("a-1"), make_pod("a-2", phase="Pending")], "other": [make_pod("x")]}

    result = k8s_service.get_pods()

    assert result["namespace"] == NAMESPACE
    assert result["total_count"] == 2
    assert result["status_summary"] == {"Running": 1, "Pending": 1}
    assert result["pods"][0]["containers"][0]["image"] == "owner/repo:latest"
    assert k8s_service.get_pods(all_namespaces=True)["total_count"] == 3


def test_pod_and_logs(k8s_service, k8s_client):
    k8s_client.pods = {NAMESPACE: [make_pod("a-1")]}

    assert k8s_service.get_pod(NAMESPACE, "a-1")["name"] == "a-1"
    logs = k8s_service.get_pod_logs(NAMESPACE, "a-1", tail_lines=0)
    assert logs["tail_lines"] == 100
    assert "line 1" in logs["logs"]

    with pytest.raises(NotFoundError):
        k8s_service.get_pod(NAMESPACE, "ghost")


def test_read_errors_are_wrapped(k8s_service, k8s_client):
    k8s_client.failures["list_nodes"] = 500
    with pytest.raises(UpstreamError, match="failed to list nodes"):
        k8s_service.get_nodes()


def test_nodes(k8s_service, k8s_client):
    k8s_client.nodes = [make_node("n1")]
    nodes = k8s_service.get_nodes()
    assert nodes[0]["name"] == "n1"
    assert nodes[0]["ready"] is True
    assert nodes[0]["capacity"] == {"cpu": "4", "memory": "8Gi"}


def test_pod_metrics_report_usage_unavailable(metrics_service, k8s_client):
    k8s_client.pods = {NAMESPACE: [make_pod("a-1", restarts=4)]}

    metrics = metrics_service.get_pod_metrics()

    assert metrics[0]["restart_count"] == 4
    assert metrics[0]["cpu_usage"] == "N/A"
    assert metrics[0]["memory_usage"] == "N/A"


def test_cluster_metrics(metrics_service, k8s_client):
    k8s_client.nodes = [make_node("n1", cpu="4", memory="8Gi"), make_node("n2", cpu="2", memory="4Gi")]
    k8s_client.pods = {NAMESPACE: [make_pod("a"), make_pod("b", phase="Pending"), make_pod("c", phase="Failed")]}
    k8s_client.namespaces = {NAMESPACE: {}}

    metrics = metrics_service.get_cluster_metrics()

    assert metrics["total_nodes"] == 2
    assert (metrics["running_pods"], metrics["pending_pods"], metrics["failed_pods"]) == (1, 1, 1)
    assert metrics["total_cpu"] == "6"
    assert metrics["total_memory"] == "12Gi"
    assert metrics["namespaces_count"] == 1


@pytest.mark.parametrize("available, expected", [(3, "Healthy"), (1, "Degraded"), (0, "Unavailable")])
def test_deployment_metrics_health(metrics_service, k8s_client, available, expected):
    k8s_client.objects[("deployment", NAMESPACE, "shop")] = client.V1Deployment(
        metadata=client.V1ObjectMeta(name="shop", namespace=NAMESPACE),
        spec=client.V1DeploymentSpec(
            replicas=3,
            selector=client.V1LabelSelector(match_labels={"app": "shop"}),
            template=client.V1PodTemplateSpec(),
        ),
        status=client.V1DeploymentStatus(replicas=3, available_replicas=available, ready_replicas=available),
    )
    k8s_client.pods = {NAMESPACE: [make_pod("shop-1", labels={"app": "shop"}), make_pod("x", labels={"app": "x"})]}

    metrics = metrics_service.get_deployment_metrics("shop")

    assert metrics["status"] == expected
    assert metrics["desired_replicas"] == 3
    assert [p["name"] for p in metrics["pods"]] == ["shop-1"]


def test_deployment_metrics_not_found(metrics_service):
    with pytest.raises(NotFoundError):
        metrics_service.get_deployment_metrics("ghost")


def test_format_age():
    now = datetime(2024, 1, 3, 4, 0, tzinfo=timezone.utc)
    assert format_age(now - timedelta(days=2, hours=4), now) == "2d4h"
    assert format_age(now - timedelta(minutes=12), now) == "12m"
    assert format_age(None) == ""
