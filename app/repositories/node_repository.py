from datetime import datetime
from typing import List, Optional, Dict, Any
from sqlalchemy import desc, func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from app.repositories.base_repository import BaseRepository
from app.models.node import Node, NodeStatus

FILTERABLE_FIELDS = ("status", "node_name")


class NodeRepository(BaseRepository[Node]):
    def __init__(self, db: Session):
        super().__init__(Node, db)

    def get_by_mac_address(self, mac_address: str) -> Optional[Node]:
        try:
            return self.db.query(Node).filter(Node.mac_address == mac_address).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def get_all_filtered(self, filters: Optional[Dict[str, Any]] = None) -> List[Node]:
        """Récupère les noeuds correspondant aux filtres, du plus récent au plus ancien"""
        try:
            query = self.db.query(Node)
            for field, value in (filters or {}).items():
                if field in FILTERABLE_FIELDS and value is not None:
                    query = query.filter(getattr(Node, field) == value)
            return query.order_by(desc(Node.created_at)).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def update(self, id: str, obj_data: Dict[str, Any]) -> Optional[Node]:
        data = dict(obj_data)
        data["updated_at"] = datetime.utcnow()
        return super().update(id, data)

    def update_resources(self, id: str, resources: Dict[str, Any]) -> Optional[Node]:
        """Remplace les ressources ; compte aussi comme un signe de vie"""
        return self.update(id, {"resources": dict(resources), "last_seen_at": datetime.utcnow()})

    def update_last_seen(self, id: str) -> Optional[Node]:
        return super().update(id, {"last_seen_at": datetime.utcnow()})

    def get_stats(self) -> Dict[str, int]:
        """Nombre de noeuds par statut, plus le total"""
        try:
            rows = self.db.query(Node.status, func.count(Node.id)).group_by(Node.status).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

        stats = {status.value: 0 for status in NodeStatus}
        for status, count in rows:
            key = status.value if isinstance(status, NodeStatus) else str(status)
            stats[key] = count
        stats["total"] = sum(stats.values())
        return stats
