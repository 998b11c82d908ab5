from typing import Annotated
from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from geniepay.api import deps
from geniepay.core.errors import ProviderUnavailable
from geniepay.schemas.common import MessageResponse
from geniepay.schemas.payment import NotifyRequest
from geniepay.services.notification_service import NotificationService
from geniepay.services.subscription_store import SubscriptionStore

router = APIRouter()

@router.post("/notify", response_model=MessageResponse)
async def notify(
    data: NotifyRequest,
    current_user: deps.CurrentUser,
    store: Annotated[SubscriptionStore, Depends(deps.get_store)],
    notifications: Annotated[NotificationService, Depends(deps.get_notifications)],
):
    """Envoi explicite : ici l'échec est remonté (503), contrairement aux envois best effort."""
    if not notifications.email.is_configured:
        raise ProviderUnavailable("Email service not configured")

    if data.type == "reminder" and data.subscription_id:
        sub = await run_in_threadpool(store.get, data.subscription_id, current_user.id)
        await notifications.renewal_reminder(current_user.email, sub)
    else:
        await notifications.generic(current_user.email)

    return MessageResponse(message="Notification sent successfully")
