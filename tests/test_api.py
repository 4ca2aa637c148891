import pytest
from fastapi.testclient import TestClient
from jose import jwt

from app.config import settings
from app.dependencies import (
    get_deployment_service,
    get_deployment_supervisor,
    get_github_account_service,
    get_github_client,
    get_k8s_service,
    get_node_service,
    get_reconciliation_service,
)
from app.main import app
from app.services.k8s_service import K8sService
from tests.fakes import make_pod

NAMESPACE = "espaze-node-deployer-apps"

CREATE_BODY = {
    "name": "Shop Front",
    "context_path": "/shop",
    "github_repo": {"owner": "octo", "name": "shop", "branch": "main"},
    "configuration": {"replicas": 1},
}


def auth_headers(user_id="user-1"):
    token = jwt.encode({"sub": user_id}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}", "X-GitHub-Token": "gh-token"}


@pytest.fixture
def client(deployment_service, reconciliation_service, supervisor, github_client, k8s_client,
           node_service, github_account_service):
    app.dependency_overrides[get_deployment_service] = lambda: deployment_service
    app.dependency_overrides[get_reconciliation_service] = lambda: reconciliation_service
    app.dependency_overrides[get_deployment_supervisor] = lambda: supervisor
    app.dependency_overrides[get_github_client] = lambda: github_client
    app.dependency_overrides[get_k8s_service] = lambda: K8sService(k8s_client)
    app.dependency_overrides[get_node_service] = lambda: node_service
    app.dependency_overrides[get_github_account_service] = lambda: github_account_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def create(client, supervisor, body=None, headers=None):
    response = client.post("/api/v1/deployments", params={"node_id": "node-1"},
                           json=body or CREATE_BODY, headers=headers or auth_headers())
    assert response.status_code == 201, response.text
    deployment = response.json()
    supervisor.wait(deployment["id"], timeout=5)
    return deployment


def test_requires_bearer_token(client):
    assert client.get("/api/v1/deployments").status_code in (401, 403)

    bad = {"Authorization": "Bearer not-a-jwt"}
    assert client.get("/api/v1/deployments", headers=bad).status_code == 401


def test_create_and_get(client, supervisor):
    created = create(client, supervisor)
    assert created["status"] == "pending"
    assert created["user_id"] == "user-1"
    assert created["node_id"] == "node-1"

    response = client.get(f"/api/v1/deployments/{created['id']}", headers=auth_headers())
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "running"
    assert body["cluster_info"]["service_name"] == "shop-front-service"
    assert body["configuration"]["replicas"] == 1


def test_validation_error_maps_to_400(client):
    body = dict(CREATE_BODY, name="")
    response = client.post("/api/v1/deployments", params={"node_id": "node-1"}, json=body,
                           headers=auth_headers())
    assert response.status_code == 400
    assert response.json() == {"error": "name is required"}


def test_missing_dockerfile_maps_to_409(client, github_client):
    github_client.dockerfile_path = None
    response = client.post("/api/v1/deployments", params={"node_id": "node-1"}, json=CREATE_BODY,
                           headers=auth_headers())
    assert response.status_code == 409


def test_unknown_deployment_maps_to_404(client):
    response = client.get("/api/v1/deployments/missing", headers=auth_headers())
    assert response.status_code == 404
    assert "not found" in response.json()["error"]


def test_upstream_error_maps_to_502(client, supervisor, k8s_client):
    created = create(client, supervisor)
    k8s_client.failures["read_deployment"] = 500

    response = client.post(f"/api/v1/deployments/{created['id']}/restart", headers=auth_headers())
    assert response.status_code == 502


def test_lists_and_stats(client, supervisor):
    create(client, supervisor)
    create(client, supervisor, body=dict(CREATE_BODY, name="other", context_path="/other"),
           headers=auth_headers("user-2"))

    mine = client.get("/api/v1/deployments", headers=auth_headers()).json()
    assert [d["name"] for d in mine] == ["Shop Front"]

    everything = client.get("/api/v1/deployments/all", params={"status": "running"}, headers=auth_headers())
    assert len(everything.json()) == 2

    by_node = client.get("/api/v1/deployments/node/node-1", headers=auth_headers()).json()
    assert len(by_node) == 2

    stats = client.get("/api/v1/deployments/stats", headers=auth_headers()).json()
    assert stats["running"] == 2
    assert stats["total"] == 2


def test_scale_update_restart_delete(client, supervisor, k8s_client):
    created = create(client, supervisor)
    url = f"/api/v1/deployments/{created['id']}"

    scaled = client.post(f"{url}/scale", json={"replicas": 5}, headers=auth_headers())
    assert scaled.status_code == 200
    assert scaled.json()["configuration"]["replicas"] == 5

    negative = client.post(f"{url}/scale", json={"replicas": -1}, headers=auth_headers())
    assert negative.status_code == 400

    updated = client.put(url, json={"environment_vars": {"MODE": "prod"}}, headers=auth_headers())
    assert updated.json()["configuration"]["environment_vars"] == {"MODE": "prod"}

    assert client.post(f"{url}/restart", headers=auth_headers()).status_code == 200

    deleted = client.delete(url, headers=auth_headers())
    assert deleted.status_code == 200
    assert client.get(url, headers=auth_headers()).status_code == 404
    assert k8s_client.objects == {}


def test_retry_and_cancel_conflicts(client, supervisor):
    created = create(client, supervisor)
    url = f"/api/v1/deployments/{created['id']}"

    assert client.post(f"{url}/retry", headers=auth_headers()).status_code == 409
    assert client.post(f"{url}/cancel", headers=auth_headers()).status_code == 409


def test_reconcile_endpoint(client, supervisor, k8s_client):
    created = create(client, supervisor)
    k8s_client.pods[NAMESPACE] = [make_pod("shop-front-abc-1"), make_pod("shop-front-abc-2", phase="Pending")]

    response = client.post(f"/api/v1/deployments/{created['id']}/reconcile", headers=auth_headers())

    assert response.status_code == 200
    assert response.json()["active_pods"] == 2
    assert response.json()["ready_pods"] == 1


def test_k8s_and_github_reads(client, k8s_client):
    k8s_client.pods[NAMESPACE] = [make_pod("a-1")]

    pods = client.get("/api/v1/k8s/pods", headers=auth_headers())
    assert pods.status_code == 200
    assert pods.json()["total_count"] == 1

    dockerfile = client.get("/api/v1/github/repositories/octo/shop/dockerfile", params={"branch": "main"},
                            headers=auth_headers())
    assert dockerfile.json() == {"has_dockerfile": True, "path": "Dockerfile"}


def test_health_and_supervisor_status(client, database):
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["database"] == "ok"

    status = client.get("/supervisor/status").json()
    assert status["running"] is True
    assert status["active_count"] == 0


def test_invalid_namespace_maps_to_400(client, github_client):
    body = dict(CREATE_BODY, namespace="Bad_NS!")
    response = client.post("/api/v1/deployments", params={"node_id": "node-1"}, json=body,
                           headers=auth_headers())
    assert response.status_code == 400
    assert "namespace" in response.json()["error"]
    assert github_client.calls == []


def test_create_falls_back_to_saved_github_token(client, supervisor, github_client):
    headers = {"Authorization": auth_headers()["Authorization"]}
    missing = client.post("/api/v1/deployments", params={"node_id": "node-1"}, json=CREATE_BODY,
                          headers=headers)
    assert missing.status_code == 400

    saved = client.post("/api/v1/github/token", json={"token": "saved-token"}, headers=headers)
    assert saved.status_code == 200

    create(client, supervisor, headers=headers)
    assert github_client.calls[0] == ("get_repository", "saved-token", "octo", "shop")


def test_github_user_and_search(client):
    user = client.get("/api/v1/github/user", headers=auth_headers())
    assert user.status_code == 200
    assert user.json()["login"] == "octocat"

    search = client.get("/api/v1/github/search", params={"q": "shop"}, headers=auth_headers())
    assert [r["full_name"] for r in search.json()] == ["octo/shop"]

    assert client.get("/api/v1/github/search", headers=auth_headers()).status_code == 400


def test_node_registry(client, k8s_client):
    registration = {"node_name": "edge-01", "mac_address": "aa:bb:cc:dd:ee:01",
                    "location": {"city": "Tunis", "country": "TN"}}
    registered = client.post("/api/v1/nodes/register", json=registration)
    assert registered.status_code == 201
    node = registered.json()
    assert node["status"] == "online"
    url = f"/api/v1/nodes/{node['id']}"

    assert client.post(f"{url}/heartbeat").status_code == 200
    assert client.get("/api/v1/nodes").status_code in (401, 403)

    updated = client.put(url, json={"status": "maintenance"}, headers=auth_headers())
    assert updated.json()["status"] == "maintenance"
    assert updated.json()["location"]["city"] == "Tunis"

    listed = client.get("/api/v1/nodes", params={"status": "maintenance"}, headers=auth_headers())
    assert [n["id"] for n in listed.json()] == [node["id"]]

    stats = client.get("/api/v1/nodes/stats", headers=auth_headers()).json()
    assert stats["maintenance"] == 1
    assert stats["total"] == 1

    k8s_client.pods[NAMESPACE] = [make_pod("a-1")]
    resources = client.post(f"{url}/resources", headers=auth_headers())
    assert resources.json()["resources"]["pods_running"] == 1

    assert client.delete(url, headers=auth_headers()).status_code == 200
    assert client.get(url, headers=auth_headers()).status_code == 404
