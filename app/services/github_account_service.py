import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.external.github_client import GitHubClient
from app.repositories.github_token_repository import GitHubTokenRepository

logger = logging.getLogger(__name__)


class GitHubAccountService:
    """Token GitHub enregistré par utilisateur et lectures liées au compte.

    Un token passé dans la requête est prioritaire sur le token enregistré.
    """

    def __init__(self, session_factory: Callable[[], Session], github_client: GitHubClient):
        self.session_factory = session_factory
        self.github_client = github_client

    @contextmanager
    def _repository(self) -> Iterator[GitHubTokenRepository]:
        db = self.session_factory()
        try:
            yield GitHubTokenRepository(db)
        finally:
            db.close()

    def save_token(self, user_id: str, token: str) -> None:
        # TODO: chiffrer le token avant stockage
        if not token:
            raise ValidationError("GitHub token is required")
        with self._repository() as repo:
            repo.upsert(user_id, token)
        logger.info(f"Token GitHub enregistré pour l'utilisateur {user_id}")

    def find_token(self, user_id: str, request_token: Optional[str] = None) -> str:
        """Token de la requête, sinon celui enregistré ; chaîne vide si aucun"""
        if request_token:
            return request_token
        with self._repository() as repo:
            stored = repo.get_by_user(user_id)
        return stored.token if stored else ""

    def resolve_token(self, user_id: str, request_token: Optional[str] = None) -> str:
        token = self.find_token(user_id, request_token)
        if not token:
            raise ValidationError("GitHub token is required")
        return token

    def search_repositories(self, user_id: str, query: str, page: int = 1, per_page: int = 30,
                            request_token: Optional[str] = None) -> List[Dict[str, Any]]:
        if not query:
            raise ValidationError("query parameter 'q' is required")
        token = self.resolve_token(user_id, request_token)
        return self.github_client.search_repositories(token, query, page, per_page)
