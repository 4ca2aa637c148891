import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLock:
    """Verrou ré-entrant par clé (un par identifiant de déploiement)"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            yield

    def discard(self, key: str) -> None:
        """Oublie le verrou d'une clé qui n'existe plus (déploiement supprimé)"""
        with self._guard:
            self._locks.pop(key, None)

    def __contains__(self, key: str) -> bool:
        with self._guard:
            return key in self._locks
