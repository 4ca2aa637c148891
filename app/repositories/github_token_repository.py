from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from app.repositories.base_repository import BaseRepository
from app.models.github_token import GitHubToken


class GitHubTokenRepository(BaseRepository[GitHubToken]):
    def __init__(self, db: Session):
        super().__init__(GitHubToken, db)

    def get_by_user(self, user_id: str) -> Optional[GitHubToken]:
        try:
            return self.db.query(GitHubToken).filter(GitHubToken.user_id == user_id).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def upsert(self, user_id: str, token: str) -> GitHubToken:
        """Crée ou remplace le token de l'utilisateur"""
        existing = self.get_by_user(user_id)
        if existing is None:
            return self.create({"user_id": user_id, "token": token})
        return self.update(existing.id, {"token": token, "updated_at": datetime.utcnow()})

    def delete_by_user(self, user_id: str) -> bool:
        existing = self.get_by_user(user_id)
        if existing is None:
            return False
        return self.delete(existing.id)
