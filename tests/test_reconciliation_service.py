from datetime import datetime, timedelta

import pytest

from app.core.exceptions import NotFoundError, UpstreamError
from app.models.deployment import DeploymentStatus
from app.repositories.deployment_repository import DeploymentRepository
from tests.fakes import make_pod

NAMESPACE = "espaze-node-deployer-apps"


@pytest.fixture
def running_deployment(db_session):
    return DeploymentRepository(db_session).create({
        "user_id": "user-1",
        "node_id": "node-1",
        "name": "Shop Front",
        "context_path": "/shop",
        "namespace": NAMESPACE,
        "status": DeploymentStatus.RUNNING,
        "configuration": {"replicas": 3},
        "metrics": {"desired_pods": 3, "cpu_usage": 12.5},
        "deployed_at": datetime.utcnow() - timedelta(minutes=2),
    })


def test_reconcile_counts_pods_by_prefix(reconciliation_service, k8s_client, running_deployment, db_session):
    k8s_client.pods[NAMESPACE] = [
        make_pod("shop-front-7d9f-abcde", restarts=2),
        make_pod("shop-front-7d9f-fghij", phase="Pending", restarts=1),
        make_pod("shop-frontend-1234-xyz"),
        make_pod("other-app-1"),
    ]

    metrics = reconciliation_service.reconcile(running_deployment.id)

    assert metrics.active_pods == 2
    assert metrics.ready_pods == 1
    assert metrics.desired_pods == 3
    assert metrics.last_restart_count == 3
    assert 100 <= metrics.uptime <= 200

    stored = DeploymentRepository(db_session).get_by_id(running_deployment.id)
    db_session.refresh(stored)
    assert stored.metrics["active_pods"] == 2
    # instantané complet : les anciennes valeurs ne survivent pas
    assert stored.metrics["cpu_usage"] == 0.0
    assert stored.last_health_check_at is not None


def test_reconcile_unknown_deployment(reconciliation_service, database):
    with pytest.raises(NotFoundError):
        reconciliation_service.reconcile("missing")


def test_reconcile_cluster_error(reconciliation_service, k8s_client, running_deployment):
    k8s_client.failures["list_pods"] = 500
    with pytest.raises(UpstreamError, match="failed to list pods"):
        reconciliation_service.reconcile(running_deployment.id)


def test_reconcile_all_only_running(reconciliation_service, k8s_client, running_deployment, db_session):
    DeploymentRepository(db_session).create({
        "user_id": "user-1",
        "node_id": "node-1",
        "name": "broken",
        "context_path": "/broken",
        "namespace": NAMESPACE,
        "status": DeploymentStatus.FAILED,
    })

    results = reconciliation_service.reconcile_all()

    assert results == {running_deployment.id: "ok"}
