import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from uuid import UUID

from geniepay.models.subscription import Subscription
from geniepay.schemas.ai import Intent
from geniepay.schemas.subscription import serialize_subscriptions
from geniepay.services.commands import handlers  # noqa: F401  (enregistre les actions)
from geniepay.services.commands.base import (
    HANDLERS,
    ActionHandler,
    CreateSubscription,
    DeleteSubscription,
    Mutation,
    SetStatus,
)
from geniepay.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    action: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    affected: List[str] = field(default_factory=list)
    created: List[Subscription] = field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"action": self.action, "response": self.message}
        body.update(self.data)
        if self.affected:
            body["affected"] = self.affected
        if self.created:
            body["created"] = serialize_subscriptions(self.created)
        return body


class CommandDispatcher:
    """
    Exécute une intention décodée pour un utilisateur.
    Les mutations sont appliquées dans l'ordre, chacune dans sa propre écriture :
    une erreur interrompt la boucle sans annuler les écritures précédentes.
    """

    def __init__(self, store: SubscriptionStore, handlers: Optional[Dict[str, ActionHandler]] = None):
        self.store = store
        self.handlers = handlers if handlers is not None else HANDLERS

    def dispatch(self, intent: Intent, owner_id: UUID) -> CommandResult:
        handler = self.handlers.get(intent.action) or self.handlers["info"]
        plan = handler(intent, owner_id, self.store)

        result = CommandResult(action=intent.action, message=plan.message, data=plan.data)
        for mutation in plan.mutations:
            self._apply(mutation, owner_id, result)

        if plan.mutations:
            logger.info("🤖 Commande '%s': %d écriture(s) pour %s", intent.action, len(plan.mutations), owner_id)
        return result

    def _apply(self, mutation: Mutation, owner_id: UUID, result: CommandResult) -> None:
        if isinstance(mutation, CreateSubscription):
            sub = self.store.create(
                owner_id,
                service_name=mutation.service_name,
                price=mutation.price,
                renewal_date=mutation.renewal_date,
            )
            result.created.append(sub)
            result.affected.append(sub.service_name)
        elif isinstance(mutation, SetStatus):
            sub = self.store.update_status(mutation.subscription_id, owner_id, mutation.status)
            result.affected.append(mutation.service_name)
            self._refresh_row(result, mutation.subscription_id, sub)
        elif isinstance(mutation, DeleteSubscription):
            self.store.delete(mutation.subscription_id, owner_id)
            result.affected.append(mutation.service_name)
            self._refresh_row(result, mutation.subscription_id, None)
        else:
            raise TypeError(f"Unknown mutation {mutation!r}")

    @staticmethod
    def _refresh_row(result: CommandResult, sub_id: int, sub: Optional[Subscription]) -> None:
        """Les lignes renvoyées reflètent l'état après écriture (analyse + action groupée)."""
        rows = result.data.get("subscriptions")
        if not rows:
            return
        if sub is None:
            result.data["subscriptions"] = [row for row in rows if row["id"] != sub_id]
            result.data["count"] = len(result.data["subscriptions"])
            return
        fresh = serialize_subscriptions([sub])[0]
        result.data["subscriptions"] = [fresh if row["id"] == sub_id else row for row in rows]
