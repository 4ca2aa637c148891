from fastapi import APIRouter, Depends, Header, Query
from typing import List
from app.api.schemas.deployment import MessageResponse
from app.api.schemas.github import (
    BranchResponse,
    DefaultBranchResponse,
    DockerfileCheckResponse,
    GitHubTokenRequest,
    GitHubUserResponse,
    RepositoryResponse,
)
from app.external.github_client import GitHubClient
from app.dependencies import get_github_account_service, get_github_client
from app.api.auth import get_current_user_id
from app.services.github_account_service import GitHubAccountService

router = APIRouter(prefix="/github", tags=["github"])


def get_github_token(
    github_token: str = Header("", alias="X-GitHub-Token"),
    accounts: GitHubAccountService = Depends(get_github_account_service),
    user_id: str = Depends(get_current_user_id)
) -> str:
    """Token de l'en-tête X-GitHub-Token, sinon celui enregistré par l'utilisateur"""
    return accounts.resolve_token(user_id, github_token)


@router.post("/token", response_model=MessageResponse)
def save_token(
    request: GitHubTokenRequest,
    accounts: GitHubAccountService = Depends(get_github_account_service),
    user_id: str = Depends(get_current_user_id)
):
    accounts.save_token(user_id, request.token)
    return MessageResponse(message="GitHub token saved successfully")


@router.get("/user", response_model=GitHubUserResponse)
def get_github_user(
    token: str = Depends(get_github_token),
    github_client: GitHubClient = Depends(get_github_client)
):
    return github_client.get_authenticated_user(token)


@router.get("/search", response_model=List[RepositoryResponse])
def search_repositories(
    q: str = "",
    page: int = Query(1, ge=1),
    per_page: int = Query(30, ge=1, le=100),
    github_token: str = Header("", alias="X-GitHub-Token"),
    accounts: GitHubAccountService = Depends(get_github_account_service),
    user_id: str = Depends(get_current_user_id)
):
    return accounts.search_repositories(user_id, q, page, per_page, request_token=github_token)


@router.get("/repositories", response_model=List[RepositoryResponse])
def list_repositories(
    page: int = Query(1, ge=1),
    per_page: int = Query(30, ge=1, le=100),
    token: str = Depends(get_github_token),
    github_client: GitHubClient = Depends(get_github_client),
    user_id: str = Depends(get_current_user_id)
):
    """Dépôts accessibles avec le token, les plus récents d'abord"""
    return github_client.list_repositories(token, page, per_page)


@router.get("/repositories/{owner}/{repo}", response_model=RepositoryResponse)
def get_repository(
    owner: str,
    repo: str,
    token: str = Depends(get_github_token),
    github_client: GitHubClient = Depends(get_github_client),
    user_id: str = Depends(get_current_user_id)
):
    return github_client.get_repository(token, owner, repo)


@router.get("/repositories/{owner}/{repo}/branches", response_model=List[BranchResponse])
def get_branches(
    owner: str,
    repo: str,
    token: str = Depends(get_github_token),
    github_client: GitHubClient = Depends(get_github_client),
    user_id: str = Depends(get_current_user_id)
):
    return github_client.get_branches(token, owner, repo)


@router.get("/repositories/{owner}/{repo}/default-branch", response_model=DefaultBranchResponse)
def get_default_branch(
    owner: str,
    repo: str,
    token: str = Depends(get_github_token),
    github_client: GitHubClient = Depends(get_github_client),
    user_id: str = Depends(get_current_user_id)
):
    return DefaultBranchResponse(default_branch=github_client.get_default_branch(token, owner, repo))


@router.get("/repositories/{owner}/{repo}/dockerfile", response_model=DockerfileCheckResponse)
def check_dockerfile(
    owner: str,
    repo: str,
    branch: str,
    token: str = Depends(get_github_token),
    github_client: GitHubClient = Depends(get_github_client),
    user_id: str = Depends(get_current_user_id)
):
    """Indique si la branche contient un Dockerfile, et à quel chemin"""
    path = github_client.find_dockerfile(token, owner, repo, branch)
    return DockerfileCheckResponse(has_dockerfile=path is not None, path=path)
