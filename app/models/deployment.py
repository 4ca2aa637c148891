import enum

from sqlalchemy import Column, String, DateTime, Integer, Text, JSON, Enum
from .base import BaseModel


class DeploymentStatus(str, enum.Enum):
    PENDING = "pending"
    BUILDING = "building"
    DEPLOYING = "deploying"
    RUNNING = "running"
    FAILED = "failed"
    STOPPED = "stopped"
    UPDATING = "updating"

    def can_transition_to(self, target: "DeploymentStatus") -> bool:
        # l'arrêt explicite (suppression) est permis depuis tous les états
        if target == DeploymentStatus.STOPPED:
            return True
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    DeploymentStatus.PENDING: {DeploymentStatus.BUILDING, DeploymentStatus.FAILED},
    DeploymentStatus.BUILDING: {DeploymentStatus.DEPLOYING, DeploymentStatus.FAILED},
    DeploymentStatus.DEPLOYING: {DeploymentStatus.RUNNING, DeploymentStatus.FAILED},
    DeploymentStatus.RUNNING: {DeploymentStatus.UPDATING},
    DeploymentStatus.UPDATING: {DeploymentStatus.RUNNING, DeploymentStatus.FAILED},
    # seule la commande explicite "retry" sort de l'état failed
    DeploymentStatus.FAILED: {DeploymentStatus.PENDING},
    DeploymentStatus.STOPPED: set(),
}


class Deployment(BaseModel):
    __tablename__ = "deployments"

    # Propriété
    user_id = Column(String(64), nullable=False, index=True)
    node_id = Column(String(64), nullable=False, index=True)

    # Kubernetes info
    name = Column(String(255), nullable=False, index=True)
    context_path = Column(String(255), nullable=False, index=True)
    namespace = Column(String(63), nullable=False)

    # Statut
    status = Column(
        Enum(DeploymentStatus, native_enum=False, length=20,
             values_callable=lambda statuses: [s.value for s in statuses]),
        default=DeploymentStatus.PENDING,
        nullable=False,
        index=True
    )
    last_error = Column(Text, nullable=True)
    attempts = Column(Integer, default=0, nullable=False)

    # Documents imbriqués
    source_snapshot = Column(JSON, nullable=False, default=dict)
    configuration = Column(JSON, nullable=False, default=dict)
    cluster_info = Column(JSON, nullable=False, default=dict)
    metrics = Column(JSON, nullable=False, default=dict)

    # Timing
    deployed_at = Column(DateTime, nullable=True)
    last_health_check_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Deployment(name='{self.name}', namespace='{self.namespace}', status='{self.status}')>"
