import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from app.core.exceptions import ConflictError

logger = logging.getLogger(__name__)


@dataclass
class SupervisedTask:
    deployment_id: str
    future: Future
    cancel_event: threading.Event
    started_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deployment_id": self.deployment_id,
            "started_at": self.started_at.isoformat(),
            "cancel_requested": self.cancel_event.is_set(),
        }


class DeploymentSupervisor:
    """Exécute les tâches de création en arrière-plan, une au plus par déploiement.

    Chaque tâche reçoit un ``threading.Event`` qu'elle doit consulter pour
    s'arrêter proprement quand une annulation est demandée.
    """

    def __init__(self, max_workers: int = 4):
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="deployer")
        self._tasks: Dict[str, SupervisedTask] = {}
        self._lock = threading.Lock()
        self.running = True
        self.completed_count = 0
        self.failed_count = 0

    def submit(self, deployment_id: str, func: Callable[[threading.Event], None]) -> SupervisedTask:
        """Lance ``func(cancel_event)`` pour ce déploiement"""
        with self._lock:
            if not self.running:
                raise ConflictError("supervisor is shutting down")
            existing = self._tasks.get(deployment_id)
            if existing is not None and not existing.future.done():
                raise ConflictError(f"a task is already running for deployment {deployment_id}")

            cancel_event = threading.Event()
            future = self._executor.submit(self._run, deployment_id, func, cancel_event)
            task = SupervisedTask(deployment_id=deployment_id, future=future, cancel_event=cancel_event)
            self._tasks[deployment_id] = task

        # hors du verrou : le callback s'exécute immédiatement si la tâche est déjà finie
        future.add_done_callback(lambda _: self._forget(task))
        logger.info(f"Tâche de déploiement {deployment_id} soumise")
        return task

    def _run(self, deployment_id: str, func: Callable[[threading.Event], None],
             cancel_event: threading.Event) -> None:
        try:
            func(cancel_event)
        except Exception:
            logger.exception(f"Tâche de déploiement {deployment_id} terminée en erreur")
            with self._lock:
                self.failed_count += 1
            raise
        with self._lock:
            self.completed_count += 1

    def _forget(self, task: SupervisedTask) -> None:
        with self._lock:
            if self._tasks.get(task.deployment_id) is task:
                del self._tasks[task.deployment_id]

    def cancel(self, deployment_id: str, wait: bool = False, timeout: Optional[float] = None) -> bool:
        """Demande l'annulation de la tâche ; retourne False s'il n'y en a pas"""
        with self._lock:
            task = self._tasks.get(deployment_id)
        if task is None or task.future.done():
            return False

        task.cancel_event.set()
        logger.info(f"Annulation demandée pour le déploiement {deployment_id}")
        if wait:
            wait_futures([task.future], timeout=timeout)
        return True

    def wait(self, deployment_id: str, timeout: Optional[float] = None) -> bool:
        """Attend la fin de la tâche ; True si elle est terminée (ou absente)"""
        with self._lock:
            task = self._tasks.get(deployment_id)
        if task is None:
            return True
        done, _ = wait_futures([task.future], timeout=timeout)
        return bool(done)

    def is_running(self, deployment_id: str) -> bool:
        with self._lock:
            task = self._tasks.get(deployment_id)
        return task is not None and not task.future.done()

    def status(self) -> Dict[str, Any]:
        with self._lock:
            active = [task.to_dict() for task in self._tasks.values() if not task.future.done()]
            return {
                "running": self.running,
                "max_workers": self.max_workers,
                "active_count": len(active),
                "active_tasks": active,
                "completed_count": self.completed_count,
                "failed_count": self.failed_count,
            }

    def shutdown(self, wait: bool = True) -> None:
        """Annule les tâches en cours et arrête le pool"""
        with self._lock:
            self.running = False
            tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel_event.set()
        self._executor.shutdown(wait=wait)
        logger.info("Superviseur de déploiements arrêté")
