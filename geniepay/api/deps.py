from typing import Annotated, Optional
from uuid import UUID
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from sqlmodel import Session

from geniepay.core.config import settings
from geniepay.core.errors import AuthError, ForbiddenError
from geniepay.core.providers import Providers
from geniepay.core.security import ALGORITHM
from geniepay.db.session import get_db
from geniepay.models.user import User
from geniepay.services.ai_engine.intent_parser import IntentParser
from geniepay.services.blockchain_service import ChainClient
from geniepay.services.commands.dispatcher import CommandDispatcher
from geniepay.services.notification_service import NotificationService
from geniepay.services.payment_service import RazorpayGateway
from geniepay.services.subscription_store import SubscriptionStore

# auto_error=False : on renvoie nos propres erreurs (401 sans token, 403 token invalide)
reusable_oauth2 = OAuth2PasswordBearer(tokenUrl="/login", auto_error=False)

def get_current_user(
    token: Annotated[Optional[str], Depends(reusable_oauth2)],
    db: Annotated[Session, Depends(get_db)]
) -> User:
    """
    Le 'Videur', appelé avant chaque route protégée.
    1. Il récupère le token Bearer.
    2. Il le décode.
    3. Il cherche l'utilisateur en base.
    L'identité du propriétaire vient toujours d'ici, jamais du corps de la requête.
    """
    if not token:
        raise AuthError("Access token required")
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[ALGORITHM]
        )
        user_id = UUID(payload.get("sub") or "")
    except (JWTError, ValueError):
        raise ForbiddenError("Invalid or expired token")

    user = db.get(User, user_id)
    if not user:
        raise AuthError("User not found")
    return user

CurrentUser = Annotated[User, Depends(get_current_user)]
DbSession = Annotated[Session, Depends(get_db)]

def get_store(db: DbSession) -> SubscriptionStore:
    return SubscriptionStore(db)

def get_providers(request: Request) -> Providers:
    return request.app.state.providers

def get_intent_parser(request: Request) -> Optional[IntentParser]:
    """None quand GOOGLE_API_KEY est absent : la route répond 503."""
    return get_providers(request).intent_parser

def get_dispatcher(store: Annotated[SubscriptionStore, Depends(get_store)]) -> CommandDispatcher:
    return CommandDispatcher(store)

def get_notifications(request: Request) -> NotificationService:
    return get_providers(request).notifications

def get_payment_gateway(request: Request) -> RazorpayGateway:
    return get_providers(request).payments

def get_chain_client(request: Request) -> ChainClient:
    return get_providers(request).chain
