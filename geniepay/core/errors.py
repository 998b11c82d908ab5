"""
Taxonomie des erreurs de l'API.
Chaque erreur porte son code HTTP et un message lisible par l'utilisateur ;
les handlers de main.py se chargent de la conversion en JSON.
"""
from typing import Any, Optional


class GeniePayError(Exception):
    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.message
        # Champs additionnels renvoyés tels quels dans le corps de la réponse
        self.extra = extra
        super().__init__(self.message)


class ValidationError(GeniePayError):
    status_code = 400
    message = "Invalid request"


class AuthError(GeniePayError):
    status_code = 401
    message = "Access token required"


class ForbiddenError(AuthError):
    status_code = 403
    message = "Invalid or expired token"


class NotFoundError(GeniePayError):
    status_code = 404
    message = "Not found"


class ProviderUnavailable(GeniePayError):
    status_code = 503
    message = "Service not configured"


class AIUnavailable(ProviderUnavailable):
    message = "AI service not available"


class StoreUnavailableError(GeniePayError):
    status_code = 500
    message = "Database unavailable"
