from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from typing import List, Optional
import os
from pathlib import Path

root_dir = Path(__file__).parent.parent
env_path = root_dir / ".env"
load_dotenv(env_path)

class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Espaze Node Deployer"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None
    ALLOWED_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # PostgreSQL Database
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "espaze_node_deployer"

    # Security (JWT emis par le service d'identite)
    SECRET_KEY: str = "your-secret-key-change-this-in-production"
    ALGORITHM: str = "HS256"

    # GitHub
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TIMEOUT: int = 10

    # Kubernetes
    KUBECONFIG: Optional[str] = None
    DEFAULT_NAMESPACE: str = "espaze-node-deployer-apps"
    MANAGED_BY: str = "espaze-node-deployer"
    PUBLIC_BASE_URL: str = "http://localhost"
    INGRESS_CLASS_NAME: Optional[str] = None

    # Orchestration des deploiements
    BUILD_DELAY_SECONDS: float = 5.0
    SUPERVISOR_MAX_WORKERS: int = 4

    # Valeurs par defaut des deploiements
    DEFAULT_REPLICAS: int = 2
    DEFAULT_MEMORY_REQUEST: str = "256Mi"
    DEFAULT_MEMORY_LIMIT: str = "512Mi"
    DEFAULT_CPU_REQUEST: str = "250m"
    DEFAULT_CPU_LIMIT: str = "500m"
    DEFAULT_CONTAINER_PORT: int = 8080
    DEFAULT_SERVICE_PORT: int = 80
    DEFAULT_IMAGE_PULL_POLICY: str = "IfNotPresent"
    DEFAULT_RESTART_POLICY: str = "Always"
    DEFAULT_IMAGE_TAG: str = "latest"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = "ignore"
        case_sensitive = True

try:
    settings = Settings()
except Exception as e:
    print(f"❌ Settings creation failed: {e}")
    print(f"❌ Available environment variables:")
    for key, value in os.environ.items():
        if any(prefix in key for prefix in ['POSTGRES', 'DATABASE', 'GITHUB', 'DEFAULT', 'APP', 'DEBUG']):
            print(f"   {key}: {'*' * min(8, len(value)) if 'KEY' in key or 'PASSWORD' in key else value}")
    raise
