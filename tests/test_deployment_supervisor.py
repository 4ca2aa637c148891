import threading

import pytest

from app.core.exceptions import ConflictError
from app.workers.deployment_supervisor import DeploymentSupervisor


def test_one_active_task_per_deployment(supervisor):
    release = threading.Event()
    supervisor.submit("dep-1", lambda cancel: release.wait(5))

    with pytest.raises(ConflictError):
        supervisor.submit("dep-1", lambda cancel: None)
    assert supervisor.is_running("dep-1")
    assert supervisor.status()["active_count"] == 1

    release.set()
    assert supervisor.wait("dep-1", timeout=5)
    assert not supervisor.is_running("dep-1")


def test_cancel_sets_event_and_waits(supervisor):
    started = threading.Event()
    observed = []

    def task(cancel_event):
        started.set()
        observed.append(cancel_event.wait(5))

    supervisor.submit("dep-1", task)
    started.wait(5)

    assert supervisor.cancel("dep-1", wait=True, timeout=5)
    assert observed == [True]
    assert supervisor.cancel("dep-1") is False


def test_failing_task_is_counted(supervisor):
    def task(cancel_event):
        raise RuntimeError("boom")

    supervisor.submit("dep-1", task)
    supervisor.wait("dep-1", timeout=5)

    status = supervisor.status()
    assert status["failed_count"] == 1
    assert status["active_count"] == 0


def test_shutdown_cancels_tasks_and_rejects_new_ones():
    supervisor = DeploymentSupervisor(max_workers=1)
    observed = []
    started = threading.Event()

    def task(cancel_event):
        started.set()
        observed.append(cancel_event.wait(5))

    supervisor.submit("dep-1", task)
    started.wait(5)
    supervisor.shutdown(wait=True)

    assert observed == [True]
    assert supervisor.status()["running"] is False
    with pytest.raises(ConflictError):
        supervisor.submit("dep-2", lambda cancel: None)
