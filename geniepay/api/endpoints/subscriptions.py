from typing import Annotated
from fastapi import APIRouter, BackgroundTasks, Depends, status

from geniepay.api import deps
from geniepay.models.subscription import SubscriptionStatus
from geniepay.schemas.common import MessageResponse
from geniepay.schemas.subscription import (
    SubscriptionCreate,
    SubscriptionEnvelope,
    SubscriptionList,
    SubscriptionRead,
)
from geniepay.services.notification_service import NotificationService
from geniepay.services.subscription_store import SubscriptionStore, active_total

router = APIRouter()

Store = Annotated[SubscriptionStore, Depends(deps.get_store)]
Notifications = Annotated[NotificationService, Depends(deps.get_notifications)]

@router.get("", response_model=SubscriptionList)
def list_subscriptions(current_user: deps.CurrentUser, store: Store):
    """Abonnements de l'utilisateur connecté + dépense mensuelle (abonnements actifs)."""
    subs = store.list_by_owner(current_user.id)
    return SubscriptionList(
        subscriptions=[SubscriptionRead.from_model(s) for s in subs],
        total_spending=active_total(subs),
        count=len(subs),
    )

@router.post("/add", response_model=SubscriptionEnvelope, status_code=status.HTTP_201_CREATED)
def add_subscription(
    data: SubscriptionCreate,
    current_user: deps.CurrentUser,
    store: Store,
    notifications: Notifications,
    background_tasks: BackgroundTasks,
):
    sub = store.create(
        current_user.id,
        service_name=data.service_name,
        price=data.price,
        renewal_date=data.renewal_date,
        is_connected=data.is_connected,
    )
    background_tasks.add_task(
        notifications.best_effort, notifications.subscription_added,
        current_user.email, sub.service_name, sub.price, sub.renewal_date,
    )
    return SubscriptionEnvelope(message="Subscription added successfully", subscription=SubscriptionRead.from_model(sub))

@router.delete("/{subscription_id}", response_model=MessageResponse)
def delete_subscription(
    subscription_id: int,
    current_user: deps.CurrentUser,
    store: Store,
    notifications: Notifications,
    background_tasks: BackgroundTasks,
):
    service_name = store.get(subscription_id, current_user.id).service_name
    store.delete(subscription_id, current_user.id)
    background_tasks.add_task(
        notifications.best_effort, notifications.subscription_cancelled, current_user.email, service_name,
    )
    return MessageResponse(message="Subscription deleted successfully")

@router.patch("/{subscription_id}/pause", response_model=SubscriptionEnvelope)
def pause_subscription(subscription_id: int, current_user: deps.CurrentUser, store: Store):
    """Bascule pause <-> actif."""
    sub = store.toggle_pause(subscription_id, current_user.id)
    verb = "paused" if sub.status == SubscriptionStatus.PAUSED else "resumed"
    return SubscriptionEnvelope(message=f"Subscription {verb} successfully", subscription=SubscriptionRead.from_model(sub))
