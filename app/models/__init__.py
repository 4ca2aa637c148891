from .base import BaseModel
from .deployment import Deployment, DeploymentStatus
from .github_token import GitHubToken
from .node import Node, NodeStatus

__all__ = ["BaseModel", "Deployment", "DeploymentStatus", "GitHubToken", "Node", "NodeStatus"]
