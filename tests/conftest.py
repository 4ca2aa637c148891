"""
Configuration des tests : base SQLite temporaire, clients Kubernetes et GitHub simulés.
"""
import os
import sys
import tempfile
from pathlib import Path

# Avant tout import de l'application : la configuration est lue à l'import.
# Base fichier : les tâches de fond ouvrent leurs propres connexions.
TEST_DB_DIR = tempfile.mkdtemp(prefix="node-deployer-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_DIR}/test.db"
os.environ["BUILD_DELAY_SECONDS"] = "0"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ALGORITHM"] = "HS256"

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import pytest

from app.core.database import db_manager
from app.core.locks import KeyedLock
from app.services.deployment_policy import DeploymentPolicy
from app.services.deployment_service import DeploymentService
from app.services.github_account_service import GitHubAccountService
from app.services.node_service import NodeService
from app.services.provisioner import ResourceProvisioner
from app.services.reconciliation_service import ReconciliationService
from app.workers.deployment_supervisor import DeploymentSupervisor
from tests.fakes import FakeGitHubClient, FakeK8sClient


@pytest.fixture
def database():
    db_manager.create_tables()
    yield db_manager
    db_manager.drop_tables()


@pytest.fixture
def db_session(database):
    session = database.get_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def k8s_client():
    return FakeK8sClient()


@pytest.fixture
def github_client():
    return FakeGitHubClient()


@pytest.fixture
def provisioner(k8s_client):
    return ResourceProvisioner(k8s_client)


@pytest.fixture
def supervisor():
    supervisor = DeploymentSupervisor(max_workers=2)
    yield supervisor
    supervisor.shutdown(wait=True)


@pytest.fixture
def deployment_service(database, github_client, provisioner, supervisor):
    return DeploymentService(
        session_factory=database.get_session,
        github_client=github_client,
        provisioner=provisioner,
        supervisor=supervisor,
        policy=DeploymentPolicy(),
        build_delay=0,
        locks=KeyedLock(),
    )


@pytest.fixture
def reconciliation_service(database, k8s_client):
    return ReconciliationService(session_factory=database.get_session, k8s_client=k8s_client)


@pytest.fixture
def node_service(database, k8s_client):
    return NodeService(session_factory=database.get_session, k8s_client=k8s_client)


@pytest.fixture
def github_account_service(database, github_client):
    return GitHubAccountService(session_factory=database.get_session, github_client=github_client)
