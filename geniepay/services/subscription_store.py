import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, col

from geniepay.core.errors import NotFoundError, StoreUnavailableError, ValidationError
from geniepay.models.subscription import Subscription, SubscriptionStatus, PaymentStatus

logger = logging.getLogger(__name__)

# Champs de paiement modifiables par les callbacks (passerelle, saisie manuelle, chaîne)
PAYMENT_FIELDS = {
    "payment_status", "payment_method", "paid_at", "payment_order_id",
    "transaction_id", "platform_fee", "total_paid", "blockchain_txn_hash",
}


class SubscriptionStore:
    """
    Accès aux abonnements, toujours filtré par propriétaire.
    Aucune méthode ne fait confiance à un user_id venant du client :
    c'est l'appelant qui passe l'identité issue du token.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, operation: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("❌ Store: échec de '%s': %s", operation, e)
            raise StoreUnavailableError() from e

    # --- LECTURE ---
    def list_by_owner(self, owner_id: UUID, status: Optional[SubscriptionStatus] = None) -> List[Subscription]:
        statement = select(Subscription).where(Subscription.user_id == owner_id)
        if status is not None:
            statement = statement.where(Subscription.status == status)
        statement = statement.order_by(col(Subscription.created_at).desc(), col(Subscription.id).desc())
        with self._guard("list"):
            return list(self.db.exec(statement).all())

    def get(self, sub_id: int, owner_id: UUID) -> Subscription:
        statement = select(Subscription).where(
            Subscription.id == sub_id,
            Subscription.user_id == owner_id,
        )
        with self._guard("get"):
            sub = self.db.exec(statement).first()
        if not sub:
            raise NotFoundError("Subscription not found")
        return sub

    def find_by_name_pattern(self, owner_id: UUID, pattern: str) -> Optional[Subscription]:
        """
        Recherche insensible à la casse par sous-chaîne.
        Les noms qui se chevauchent ("Prime" / "Amazon Prime") ne sont pas
        départagés : le plus ancien abonnement gagne.
        """
        pattern = (pattern or "").strip()
        if not pattern:
            return None
        statement = (
            select(Subscription)
            .where(Subscription.user_id == owner_id)
            .where(func.lower(Subscription.service_name).contains(pattern.lower(), autoescape=True))
            .order_by(col(Subscription.created_at).asc(), col(Subscription.id).asc())
        )
        with self._guard("find_by_name"):
            return self.db.exec(statement).first()

    # --- ÉCRITURE ---
    def create(
        self,
        owner_id: UUID,
        service_name: str,
        price: float,
        renewal_date: datetime,
        is_connected: bool = False,
    ) -> Subscription:
        service_name = (service_name or "").strip()
        if not service_name:
            raise ValidationError("Service name is required")
        try:
            price = float(price)
        except (TypeError, ValueError):
            raise ValidationError("Price must be a number")
        if price < 0:
            raise ValidationError("Price must be a non-negative number")

        sub = Subscription(
            user_id=owner_id,
            service_name=service_name,
            price=price,
            renewal_date=renewal_date,
            status=SubscriptionStatus.ACTIVE,
            is_connected=is_connected,
        )
        with self._guard("create"):
            self.db.add(sub)
            self.db.commit()
            self.db.refresh(sub)
        return sub

    def update_status(self, sub_id: int, owner_id: UUID, status: SubscriptionStatus) -> Subscription:
        try:
            status = SubscriptionStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid status '{status}'")
        sub = self.get(sub_id, owner_id)
        sub.status = status
        with self._guard("update_status"):
            self.db.add(sub)
            self.db.commit()
            self.db.refresh(sub)
        return sub

    def toggle_pause(self, sub_id: int, owner_id: UUID) -> Subscription:
        """paused -> active, tout le reste -> paused."""
        sub = self.get(sub_id, owner_id)
        new_status = SubscriptionStatus.ACTIVE if sub.status == SubscriptionStatus.PAUSED else SubscriptionStatus.PAUSED
        return self.update_status(sub_id, owner_id, new_status)

    def update_payment_info(self, sub_id: int, **fields) -> Subscription:
        unknown = set(fields) - PAYMENT_FIELDS
        if unknown:
            raise ValidationError(f"Unknown payment fields: {', '.join(sorted(unknown))}")
        if "payment_status" in fields and fields["payment_status"] is not None:
            try:
                fields["payment_status"] = PaymentStatus(fields["payment_status"])
            except ValueError:
                raise ValidationError(f"Invalid payment status '{fields['payment_status']}'")

        with self._guard("update_payment_info"):
            sub = self.db.get(Subscription, sub_id)
        if not sub:
            raise NotFoundError("Subscription not found")
        for key, value in fields.items():
            setattr(sub, key, value)
        with self._guard("update_payment_info"):
            self.db.add(sub)
            self.db.commit()
            self.db.refresh(sub)
        return sub

    def delete(self, sub_id: int, owner_id: UUID) -> None:
        """Suppression définitive (pas de soft-delete)."""
        sub = self.get(sub_id, owner_id)
        with self._guard("delete"):
            self.db.delete(sub)
            self.db.commit()


def active_total(subs: Iterable[Subscription]) -> float:
    """Somme des prix des abonnements actifs."""
    return round(sum(s.price for s in subs if s.status == SubscriptionStatus.ACTIVE), 2)
