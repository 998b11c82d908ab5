import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Union
from uuid import UUID

from geniepay.models.subscription import SubscriptionStatus
from geniepay.schemas.ai import Intent

log = logging.getLogger(__name__)


# --- Mutations : calculées par les handlers, appliquées par le dispatcher ---

@dataclass(frozen=True)
class CreateSubscription:
    service_name: str
    price: float
    renewal_date: datetime

@dataclass(frozen=True)
class SetStatus:
    subscription_id: int
    service_name: str
    status: SubscriptionStatus

@dataclass(frozen=True)
class DeleteSubscription:
    subscription_id: int
    service_name: str

Mutation = Union[CreateSubscription, SetStatus, DeleteSubscription]


@dataclass
class CommandPlan:
    """Ce qu'un handler décide : le message, les écritures, et les données à renvoyer."""
    message: str
    mutations: List[Mutation] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)


# (intent, owner_id, store) -> plan. Les handlers lisent le store mais n'écrivent jamais.
ActionHandler = Callable[[Intent, UUID, Any], CommandPlan]

HANDLERS: Dict[str, ActionHandler] = {}


def register_action(*actions: str):
    """Décorateur : associe un handler à une ou plusieurs actions."""
    def decorator(func: ActionHandler) -> ActionHandler:
        for action in actions:
            if action in HANDLERS:
                log.warning("⚠️ Action '%s' déjà enregistrée (%s), remplacée par %s",
                            action, HANDLERS[action].__name__, func.__name__)
            HANDLERS[action] = func
        return func
    return decorator
