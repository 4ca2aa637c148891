from fastapi import FastAPI
import logging
import uvicorn
from contextlib import asynccontextmanager

from app.api.middleware import setup_middlewares
from app.api.router import router
from app.config import settings
from app.core.database import db_manager
from app.core.logging import setup_logging
from app.dependencies import get_deployment_supervisor

setup_logging(settings.LOG_LEVEL, log_file=settings.LOG_FILE)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Démarrage de l'application...")
    db_manager.create_tables()
    app.state.supervisor = get_deployment_supervisor()

    yield

    logger.info("Arrêt de l'application...")
    # les créations en cours sont annulées et compensées avant l'arrêt
    app.state.supervisor.shutdown(wait=True)
    logger.info("Application arrêtée proprement")

app = FastAPI(
    title=settings.APP_NAME,
    description="API de déploiement d'applications GitHub sur Kubernetes",
    version="1.0.0",
    lifespan=lifespan
)

setup_middlewares(app)
app.include_router(router)


if __name__ == "__main__":
    logger.info("Documentation : http://localhost:8000/docs")
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
