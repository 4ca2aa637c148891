import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.v1 import deployments, k8s, metrics, github, nodes
from app.config import settings
from app.core.database import get_db
from app.dependencies import get_deployment_supervisor
from app.workers.deployment_supervisor import DeploymentSupervisor

logger = logging.getLogger(__name__)

router = APIRouter()

router.include_router(deployments.router, prefix="/api/v1")
router.include_router(k8s.router, prefix="/api/v1")
router.include_router(metrics.router, prefix="/api/v1")
router.include_router(github.router, prefix="/api/v1")
router.include_router(nodes.router, prefix="/api/v1")


@router.get("/")
def root():
    return {
        "message": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs"
    }


@router.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Base de données injoignable: {e}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database
    }


@router.get("/supervisor/status")
def supervisor_status(supervisor: DeploymentSupervisor = Depends(get_deployment_supervisor)):
    status = supervisor.status()
    status["status"] = "healthy" if status["running"] else "stopped"
    return status
