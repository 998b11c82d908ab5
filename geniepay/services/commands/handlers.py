"""
Handlers des commandes du chat.
Chaque handler est une fonction pure (intent, owner_id, store) -> CommandPlan :
il lit l'état via le store, décide des mutations, et compose le message.
"""
from typing import List, Optional, Sequence
from uuid import UUID

from geniepay.models.subscription import Subscription, SubscriptionStatus
from geniepay.schemas.ai import Intent
from geniepay.schemas.subscription import serialize_subscriptions
from geniepay.services.commands.base import (
    CommandPlan,
    CreateSubscription,
    DeleteSubscription,
    Mutation,
    SetStatus,
    register_action,
)
from geniepay.services.subscription_store import SubscriptionStore, active_total
from geniepay.utils.timezone import days_from_now

DEFAULT_RENEWAL_DAYS = 30
DEFAULT_LIMIT = 5

DESCENDING = {"top", "highest", "most-expensive"}
ASCENDING = {"lowest", "cheapest"}

_PAST_TENSE = {"pause": "Paused", "resume": "Resumed", "delete": "Deleted"}
_ICONS = {"pause": "⏸️", "resume": "▶️", "delete": "🗑️"}


def format_inr(amount: float) -> str:
    if float(amount).is_integer():
        return f"₹{int(amount):,}"
    return f"₹{amount:,.2f}"


def filter_subscriptions(subs: Sequence[Subscription], status_filter: Optional[str]) -> List[Subscription]:
    if status_filter in (None, "all"):
        return list(subs)
    return [s for s in subs if s.status == SubscriptionStatus(status_filter)]


def not_found(name: str) -> CommandPlan:
    return CommandPlan(message=f"I couldn't find a subscription matching \"{name}\".")


def bulk_mutations(targets: Sequence[Subscription], bulk_action: str) -> List[Mutation]:
    """pause : seulement les non-pausés ; resume : seulement les pausés ; delete : tout."""
    mutations: List[Mutation] = []
    for sub in targets:
        if bulk_action == "pause" and sub.status != SubscriptionStatus.PAUSED:
            mutations.append(SetStatus(sub.id, sub.service_name, SubscriptionStatus.PAUSED))
        elif bulk_action == "resume" and sub.status == SubscriptionStatus.PAUSED:
            mutations.append(SetStatus(sub.id, sub.service_name, SubscriptionStatus.ACTIVE))
        elif bulk_action == "delete":
            mutations.append(DeleteSubscription(sub.id, sub.service_name))
    return mutations


def bulk_message(bulk_action: str, mutations: Sequence[Mutation]) -> str:
    if not mutations:
        target = {"pause": "paused", "resume": "resumed", "delete": "deleted"}[bulk_action]
        return f"No subscriptions needed to be {target}."
    names = ", ".join(m.service_name for m in mutations)
    plural = "subscription" if len(mutations) == 1 else "subscriptions"
    return f"{_ICONS[bulk_action]} {_PAST_TENSE[bulk_action]} {len(mutations)} {plural}: {names}."


@register_action("add")
def handle_add(intent: Intent, owner_id: UUID, store: SubscriptionStore) -> CommandPlan:
    name = (intent.service_name or "").strip()
    if not name or intent.price is None:
        return CommandPlan(
            message="I need both a service name and a monthly price to add a subscription. "
                    "Try something like \"Add Netflix for ₹649\"."
        )
    if intent.price < 0:
        return CommandPlan(message="The price of a subscription can't be negative.")

    renewal = days_from_now(DEFAULT_RENEWAL_DAYS)
    return CommandPlan(
        message=f"✅ Added {name} at {format_inr(intent.price)}/month. "
                f"Next renewal on {renewal:%d %b %Y}.",
        mutations=[CreateSubscription(name, intent.price, renewal)],
    )


@register_action("bulkAdd")
def handle_bulk_add(intent: Intent, owner_id: UUID, store: SubscriptionStore) -> CommandPlan:
    renewal = days_from_now(DEFAULT_RENEWAL_DAYS)
    mutations: List[Mutation] = []
    skipped: List[str] = []
    for item in intent.subscriptions:
        name = (item.name or "").strip()
        if name and item.price is not None and item.price >= 0:
            mutations.append(CreateSubscription(name, item.price, renewal))
        else:
            skipped.append(name or "(unnamed)")

    if not mutations:
        return CommandPlan(message="I couldn't find any subscription with both a name and a price to add.")

    names = ", ".join(m.service_name for m in mutations)
    message = f"✅ Added {len(mutations)} subscriptions: {names}."
    if skipped:
        message += f" Skipped (missing price): {', '.join(skipped)}."
    return CommandPlan(message=message, mutations=mutations)


@register_action("delete")
def handle_delete(intent: Intent, owner_id: UUID, store: SubscriptionStore) -> CommandPlan:
    name = (intent.service_name or "").strip()
    if not name:
        return CommandPlan(message="Which subscription would you like to delete?")
    sub = store.find_by_name_pattern(owner_id, name)
    if not sub:
        return not_found(name)
    return CommandPlan(
        message=f"🗑️ Deleted {sub.service_name}. You won't be charged for it anymore.",
        mutations=[DeleteSubscription(sub.id, sub.service_name)],
    )


def _set_status(intent: Intent, owner_id: UUID, store: SubscriptionStore, verb: str,
                status: SubscriptionStatus) -> CommandPlan:
    name = (intent.service_name or "").strip()
    if not name:
        return CommandPlan(message=f"Which subscription would you like to {verb}?")
    sub = store.find_by_name_pattern(owner_id, name)
    if not sub:
        return not_found(name)
    if sub.status == status:
        return CommandPlan(message=f"{sub.service_name} is already {status.value}.")
    return CommandPlan(
        message=f"{_ICONS[verb]} {_PAST_TENSE[verb]} {sub.service_name}.",
        mutations=[SetStatus(sub.id, sub.service_name, status)],
    )


@register_action("pause")
def handle_pause(intent: Intent, owner_id: UUID, store: SubscriptionStore) -> CommandPlan:
    return _set_status(intent, owner_id, store, "pause", SubscriptionStatus.PAUSED)


@register_action("resume")
def handle_resume(intent: Intent, owner_id: UUID, store: SubscriptionStore) -> CommandPlan:
    return _set_status(intent, owner_id, store, "resume", SubscriptionStatus.ACTIVE)


@register_action("list")
def handle_list(intent: Intent, owner_id: UUID, store: SubscriptionStore) -> CommandPlan:
    status_filter = intent.filter or "all"
    subs = store.list_by_owner(owner_id)
    selected = filter_subscriptions(subs, status_filter)
    total = active_total(subs)

    if not selected:
        label = "" if status_filter == "all" else f"{status_filter} "
        message = f"You don't have any {label}subscriptions yet."
    else:
        label = "" if status_filter == "all" else f" {status_filter}"
        lines = [f"• {s.service_name}: {format_inr(s.price)} ({s.status.value})" for s in selected]
        message = (
            f"Here are your {len(selected)}{label} subscriptions:\n" + "\n".join(lines)
            + f"\nMonthly spend on active subscriptions: {format_inr(total)}."
        )
    return CommandPlan(
        message=message,
        data={
            "subscriptions": serialize_subscriptions(selected),
            "totalSpending": total,
            "count": len(selected),
            "filter": status_filter,
        },
    )


@register_action("analytics")
def handle_analytics(intent: Intent, owner_id: UUID, store: SubscriptionStore) -> CommandPlan:
    status_filter = intent.filter or "all"
    analytics_type = intent.analytics_type or "top"
    subs = store.list_by_owner(owner_id)
    selected = filter_subscriptions(subs, status_filter)

    if analytics_type == "total":
        active = [s for s in subs if s.status == SubscriptionStatus.ACTIVE]
        paused = [s for s in subs if s.status == SubscriptionStatus.PAUSED]
        total = active_total(subs)
        return CommandPlan(
            message=(
                f"📊 You have {len(subs)} subscriptions "
                f"({len(active)} active, {len(paused)} paused). "
                f"Monthly spend: {format_inr(total)}."
            ),
            data={
                "analyticsType": "total",
                "count": len(subs),
                "activeCount": len(active),
                "pausedCount": len(paused),
                "totalSpending": total,
                "filter": status_filter,
            },
        )

    limit = intent.limit or DEFAULT_LIMIT
    ranked = sorted(selected, key=lambda s: s.price, reverse=analytics_type in DESCENDING)[:limit]
    label = "most expensive" if analytics_type in DESCENDING else "cheapest"
    data = {
        "analyticsType": analytics_type,
        "limit": limit,
        "filter": status_filter,
        "subscriptions": serialize_subscriptions(ranked),
        "count": len(ranked),
    }

    if not ranked:
        return CommandPlan(message="You don't have any matching subscriptions.", data=data)

    if len(ranked) == 1:
        s = ranked[0]
        message = f"Your {label} subscription is {s.service_name} at {format_inr(s.price)}/month."
    else:
        lines = [f"{i}. {s.service_name}: {format_inr(s.price)}" for i, s in enumerate(ranked, 1)]
        message = f"Your {len(ranked)} {label} subscriptions:\n" + "\n".join(lines)

    # Analyse suivie d'une action groupée ("reprends le moins cher des abonnements en pause")
    if intent.bulk_action:
        mutations = bulk_mutations(ranked, intent.bulk_action)
        return CommandPlan(
            message=f"{message}\n{bulk_message(intent.bulk_action, mutations)}",
            mutations=mutations,
            data=data,
        )
    return CommandPlan(message=message, data=data)


@register_action("bulk")
def handle_bulk(intent: Intent, owner_id: UUID, store: SubscriptionStore) -> CommandPlan:
    if not intent.bulk_action:
        return CommandPlan(message="What would you like to do with them: pause, resume or delete?")

    targets: List[Subscription] = []
    missing: List[str] = []
    if intent.service_name and intent.service_name.strip():
        seen = set()
        for name in (n.strip() for n in intent.service_name.split(",")):
            if not name:
                continue
            sub = store.find_by_name_pattern(owner_id, name)
            if sub is None:
                missing.append(name)
            elif sub.id not in seen:
                seen.add(sub.id)
                targets.append(sub)
    elif intent.filter:
        targets = filter_subscriptions(store.list_by_owner(owner_id), intent.filter)
    else:
        return CommandPlan(
            message=f"Which subscriptions should I {intent.bulk_action}? "
                    f"Name them, or say \"all\", \"active\" or \"paused\"."
        )

    mutations = bulk_mutations(targets, intent.bulk_action)
    message = bulk_message(intent.bulk_action, mutations)
    if missing:
        message += f" I couldn't find: {', '.join(missing)}."
    return CommandPlan(message=message, mutations=mutations)


@register_action("clarification")
def handle_clarification(intent: Intent, owner_id: UUID, store: SubscriptionStore) -> CommandPlan:
    return CommandPlan(message=intent.response or "Could you tell me a bit more about what you'd like to do?")


@register_action("info")
def handle_info(intent: Intent, owner_id: UUID, store: SubscriptionStore) -> CommandPlan:
    return CommandPlan(message=intent.response or "I'm not sure how to help with that yet.")
