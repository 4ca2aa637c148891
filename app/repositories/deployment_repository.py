from datetime import datetime
from typing import List, Optional, Dict, Any
from sqlalchemy import desc, func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from app.repositories.base_repository import BaseRepository
from app.models.deployment import Deployment, DeploymentStatus

FILTERABLE_FIELDS = ("status", "node_id", "user_id", "namespace", "name")


class DeploymentRepository(BaseRepository[Deployment]):
    def __init__(self, db: Session):
        super().__init__(Deployment, db)

    def get_by_user(self, user_id: str) -> List[Deployment]:
        """Récupère les déploiements d'un utilisateur, du plus récent au plus ancien"""
        return self.get_all_filtered({"user_id": user_id})

    def get_by_node(self, node_id: str) -> List[Deployment]:
        """Récupère les déploiements d'un noeud, du plus récent au plus ancien"""
        return self.get_all_filtered({"node_id": node_id})

    def get_by_status(self, status: DeploymentStatus) -> List[Deployment]:
        return self.get_all_filtered({"status": status})

    def get_all_filtered(self, filters: Optional[Dict[str, Any]] = None) -> List[Deployment]:
        """Récupère les déploiements correspondant aux filtres (champs inconnus ignorés)"""
        try:
            query = self.db.query(Deployment)
            for field, value in (filters or {}).items():
                if field in FILTERABLE_FIELDS and value is not None:
                    query = query.filter(getattr(Deployment, field) == value)
            return query.order_by(desc(Deployment.created_at)).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def update(self, id: str, obj_data: Dict[str, Any]) -> Optional[Deployment]:
        data = dict(obj_data)
        data["updated_at"] = datetime.utcnow()
        return super().update(id, data)

    def update_status(self, id: str, status: DeploymentStatus,
                      last_error: Optional[str] = None) -> Optional[Deployment]:
        """Met à jour le statut ; le passage à running horodate deployed_at"""
        data: Dict[str, Any] = {"status": status}
        if status == DeploymentStatus.RUNNING:
            data["deployed_at"] = datetime.utcnow()
        if status == DeploymentStatus.FAILED:
            data["last_error"] = last_error
        return self.update(id, data)

    def update_metrics(self, id: str, metrics: Dict[str, Any]) -> Optional[Deployment]:
        """Remplace entièrement les métriques et horodate le contrôle de santé"""
        return self.update(id, {
            "metrics": dict(metrics),
            "last_health_check_at": datetime.utcnow(),
        })

    def get_stats(self, node_id: Optional[str] = None) -> Dict[str, int]:
        """Nombre de déploiements par statut, plus le total"""
        try:
            query = self.db.query(Deployment.status, func.count(Deployment.id))
            if node_id:
                query = query.filter(Deployment.node_id == node_id)
            rows = query.group_by(Deployment.status).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

        stats = {status.value: 0 for status in DeploymentStatus}
        for status, count in rows:
            key = status.value if isinstance(status, DeploymentStatus) else str(status)
            stats[key] = count
        stats["total"] = sum(stats.values())
        return stats
