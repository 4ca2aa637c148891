from sqlalchemy import Column, String, Text
from .base import BaseModel


class GitHubToken(BaseModel):
    """Token GitHub enregistré par un utilisateur (un seul par utilisateur)"""
    __tablename__ = "github_tokens"

    user_id = Column(String(64), nullable=False, unique=True, index=True)
    token = Column(Text, nullable=False)

    def __repr__(self):
        return f"<GitHubToken(user_id='{self.user_id}')>"
