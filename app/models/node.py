import enum

from sqlalchemy import Column, String, DateTime, JSON, Enum
from .base import BaseModel, utcnow


class NodeStatus(str, enum.Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    MAINTENANCE = "maintenance"
    ERROR = "error"


class Node(BaseModel):
    """Machine exécutant un cluster Kubernetes, enregistrée par son adresse MAC"""
    __tablename__ = "nodes"

    node_name = Column(String(255), nullable=False, index=True)
    mac_address = Column(String(64), nullable=False, unique=True, index=True)
    public_ip = Column(String(64), nullable=True)
    private_ip = Column(String(64), nullable=True)

    status = Column(
        Enum(NodeStatus, native_enum=False, length=20,
             values_callable=lambda statuses: [s.value for s in statuses]),
        default=NodeStatus.ONLINE,
        nullable=False,
        index=True
    )

    # Documents imbriqués ("metadata" est réservé par SQLAlchemy)
    location = Column(JSON, nullable=False, default=dict)
    cluster_info = Column(JSON, nullable=False, default=dict)
    resources = Column(JSON, nullable=False, default=dict)
    node_metadata = Column(JSON, nullable=False, default=dict)

    last_seen_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self):
        return f"<Node(name='{self.node_name}', mac='{self.mac_address}', status='{self.status}')>"
