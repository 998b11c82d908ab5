from datetime import datetime
from typing import Dict, Literal, Optional
from pydantic import Field

from geniepay.models.subscription import PaymentStatus
from geniepay.schemas.common import CamelModel

class CreateOrderRequest(CamelModel):
    subscription_id: int

class CreateOrderResponse(CamelModel):
    order_id: str
    amount: int         # en paise
    currency: str = "INR"
    key_id: str
    breakdown: Dict[str, float]

class VerifyPaymentRequest(CamelModel):
    subscription_id: int
    order_id: str
    payment_id: str
    signature: str

class ManualPaymentRequest(CamelModel):
    subscription_id: int
    method: str = "upi"
    transaction_id: Optional[str] = None

# Une ligne de l'historique des transactions
class Transaction(CamelModel):
    subscription_id: int
    service_name: str
    amount: float
    platform_fee: float = 0
    total_paid: float
    payment_status: PaymentStatus
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_date: Optional[datetime] = None

class BlockchainRequest(CamelModel):
    action: Literal["pay", "pause", "cancel"]
    subscription_id: Optional[int] = None
    amount: Optional[int] = Field(default=None, ge=0)
    recipient: Optional[str] = None

class NotifyRequest(CamelModel):
    type: str = "generic"
    subscription_id: Optional[int] = None
