class DeployerError(Exception):
    """Erreur de base du déployeur"""
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(DeployerError):
    """Requête incomplète ou mal formée, rejetée avant tout appel externe"""
    status_code = 400


class NotFoundError(DeployerError):
    status_code = 404


class ConflictError(DeployerError):
    """L'état courant ne permet pas l'opération demandée"""
    status_code = 409


class UpstreamError(DeployerError):
    """Échec de GitHub ou de l'API Kubernetes"""
    status_code = 502


class ProvisioningCancelled(UpstreamError):
    pass
