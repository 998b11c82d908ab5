from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import Field

from geniepay.models.subscription import Subscription, SubscriptionStatus, PaymentStatus
from geniepay.schemas.common import CamelModel

# Ce que le front envoie pour créer un abonnement
class SubscriptionCreate(CamelModel):
    service_name: str = Field(min_length=1)
    price: float = Field(ge=0)
    renewal_date: datetime
    is_connected: bool = False

class PaymentInfo(CamelModel):
    status: PaymentStatus
    method: Optional[str] = None
    paid_at: Optional[datetime] = None
    transaction_id: Optional[str] = None
    platform_fee: Optional[float] = None
    total_paid: Optional[float] = None

class SubscriptionRead(CamelModel):
    id: int
    user_id: UUID
    service_name: str
    price: float
    renewal_date: datetime
    status: SubscriptionStatus
    blockchain_txn_hash: Optional[str] = None
    is_connected: bool = False
    payment_info: Optional[PaymentInfo] = None
    created_at: datetime

    @classmethod
    def from_model(cls, sub: Subscription) -> "SubscriptionRead":
        payment_info = None
        if sub.payment_status is not None:
            payment_info = PaymentInfo(
                status=sub.payment_status,
                method=sub.payment_method,
                paid_at=sub.paid_at,
                transaction_id=sub.transaction_id,
                platform_fee=sub.platform_fee,
                total_paid=sub.total_paid,
            )
        return cls(
            id=sub.id,
            user_id=sub.user_id,
            service_name=sub.service_name,
            price=sub.price,
            renewal_date=sub.renewal_date,
            status=sub.status,
            blockchain_txn_hash=sub.blockchain_txn_hash,
            is_connected=sub.is_connected,
            payment_info=payment_info,
            created_at=sub.created_at,
        )

def serialize_subscriptions(subs: List[Subscription]) -> List[dict]:
    return [SubscriptionRead.from_model(s).model_dump(mode="json", by_alias=True) for s in subs]

class SubscriptionList(CamelModel):
    subscriptions: List[SubscriptionRead]
    total_spending: float
    count: int

class SubscriptionEnvelope(CamelModel):
    message: str
    subscription: SubscriptionRead
