from typing import Optional
from uuid import UUID
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel
from datetime import datetime
from enum import Enum

from geniepay.utils.timezone import utcnow

class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"

class PaymentStatus(str, Enum):
    PAID = "paid"
    PENDING = "pending"
    FAILED = "failed"
    MANUAL = "manual"   # Paiement déclaré hors passerelle (UPI)

class Subscription(SQLModel, table=True):
    __tablename__ = "subscriptions"

    # Entier : sert aussi d'identifiant on-chain (uint256)
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)

    service_name: str
    price: float = Field(ge=0)
    renewal_date: datetime = Field(sa_type=DateTime(timezone=True))
    status: SubscriptionStatus = Field(default=SubscriptionStatus.ACTIVE, index=True)

    blockchain_txn_hash: Optional[str] = None
    is_connected: bool = Field(default=False)

    # Métadonnées de paiement (à plat, exposées en objet "paymentInfo")
    payment_status: Optional[PaymentStatus] = None
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    payment_order_id: Optional[str] = None
    transaction_id: Optional[str] = None
    platform_fee: Optional[float] = None
    total_paid: Optional[float] = None

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
