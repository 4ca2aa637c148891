from pydantic import BaseModel
from typing import Optional


class RepositoryResponse(BaseModel):
    id: Optional[int]
    name: str
    full_name: str
    owner: str
    private: bool
    html_url: str
    description: Optional[str]
    clone_url: str
    language: Optional[str]
    default_branch: str
    stars: int
    updated_at: Optional[str]


class BranchResponse(BaseModel):
    name: str
    protected: bool
    commit_sha: str


class DefaultBranchResponse(BaseModel):
    default_branch: str


class DockerfileCheckResponse(BaseModel):
    has_dockerfile: bool
    path: Optional[str] = None


class GitHubUserResponse(BaseModel):
    login: str
    id: Optional[int]
    avatar_url: str
    name: Optional[str] = None
    email: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None


class GitHubTokenRequest(BaseModel):
    token: str
