import requests
import logging
from typing import Any, Dict, List, Optional

from app.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)

DOCKERFILE_CANDIDATES = ("Dockerfile", "dockerfile", ".docker/Dockerfile")


class GitHubClient:
    """Client REST GitHub authentifié par le token fourni par l'appelant"""

    def __init__(self, base_url: str = "https://api.github.com", timeout: int = 10,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self, token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _request(self, token: str, path: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.session.get(url, headers=self._headers(token), params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Erreur réseau GitHub sur {path}: {e}")
            raise UpstreamError(f"GitHub request failed: {e}") from e

    def _get_json(self, token: str, path: str, operation: str,
                  params: Optional[Dict[str, Any]] = None) -> Any:
        response = self._request(token, path, params)
        if response.status_code != 200:
            raise UpstreamError(f"failed to {operation}: {self._provider_message(response)}")
        return response.json()

    @staticmethod
    def _provider_message(response: requests.Response) -> str:
        try:
            message = response.json().get("message")
        except ValueError:
            message = None
        return message or f"HTTP {response.status_code}"

    def list_repositories(self, token: str, page: int = 1, per_page: int = 30) -> List[Dict[str, Any]]:
        """Dépôts de l'utilisateur authentifié, les plus récemment mis à jour d'abord"""
        repos = self._get_json(token, "/user/repos", "list repositories", params={
            "page": page,
            "per_page": per_page,
            "sort": "updated",
            "direction": "desc",
        })
        return [self._convert_repository(repo) for repo in repos]

    def get_repository(self, token: str, owner: str, repo: str) -> Dict[str, Any]:
        data = self._get_json(token, f"/repos/{owner}/{repo}", "get repository")
        return self._convert_repository(data)

    def get_branches(self, token: str, owner: str, repo: str) -> List[Dict[str, Any]]:
        branches = self._get_json(token, f"/repos/{owner}/{repo}/branches", "list branches")
        return [
            {
                "name": branch.get("name", ""),
                "protected": branch.get("protected", False),
                "commit_sha": (branch.get("commit") or {}).get("sha", ""),
            }
            for branch in branches
        ]

    def get_branch(self, token: str, owner: str, repo: str, branch: str) -> Dict[str, Any]:
        data = self._get_json(token, f"/repos/{owner}/{repo}/branches/{branch}", "get branch")
        return {
            "name": data.get("name", branch),
            "protected": data.get("protected", False),
            "commit_sha": (data.get("commit") or {}).get("sha", ""),
        }

    def get_default_branch(self, token: str, owner: str, repo: str) -> str:
        return self.get_repository(token, owner, repo)["default_branch"]

    def search_repositories(self, token: str, query: str, page: int = 1,
                            per_page: int = 30) -> List[Dict[str, Any]]:
        result = self._get_json(token, "/search/repositories", "search repositories", params={
            "q": query,
            "page": page,
            "per_page": per_page,
        })
        return [self._convert_repository(repo) for repo in result.get("items", [])]

    def get_authenticated_user(self, token: str) -> Dict[str, Any]:
        """Compte GitHub propriétaire du token"""
        data = self._get_json(token, "/user", "get user")
        return {
            "login": data.get("login", ""),
            "id": data.get("id"),
            "avatar_url": data.get("avatar_url", ""),
            "name": data.get("name"),
            "email": data.get("email"),
            "bio": data.get("bio"),
            "location": data.get("location"),
        }

    def find_dockerfile(self, token: str, owner: str, repo: str, branch: str) -> Optional[str]:
        """Cherche un Dockerfile sur la branche.

        Retourne son chemin, ou None si aucun candidat n'existe (404 partout).
        Toute autre réponse est une erreur GitHub, pas une absence.
        """
        for path in DOCKERFILE_CANDIDATES:
            response = self._request(token, f"/repos/{owner}/{repo}/contents/{path}", {"ref": branch})
            if response.status_code == 200:
                logger.info(f"Dockerfile trouvé dans {owner}/{repo}@{branch}: {path}")
                return path
            if response.status_code != 404:
                raise UpstreamError(f"failed to check Dockerfile: {self._provider_message(response)}")
        return None

    @staticmethod
    def _convert_repository(repo: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": repo.get("id"),
            "name": repo.get("name", ""),
            "full_name": repo.get("full_name", ""),
            "owner": (repo.get("owner") or {}).get("login", ""),
            "private": repo.get("private", False),
            "html_url": repo.get("html_url", ""),
            "description": repo.get("description"),
            "clone_url": repo.get("clone_url", ""),
            "language": repo.get("language"),
            "default_branch": repo.get("default_branch", ""),
            "stars": repo.get("stargazers_count", 0),
            "updated_at": repo.get("updated_at"),
        }
