import logging
from typing import Annotated, List
from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from geniepay.api import deps
from geniepay.core.errors import ValidationError
from geniepay.models.subscription import PaymentStatus
from geniepay.schemas.payment import (
    CreateOrderRequest,
    CreateOrderResponse,
    ManualPaymentRequest,
    Transaction,
    VerifyPaymentRequest,
)
from geniepay.schemas.subscription import SubscriptionEnvelope, SubscriptionRead
from geniepay.services.payment_service import RazorpayGateway, payment_breakdown, rupees_to_paise
from geniepay.services.subscription_store import SubscriptionStore
from geniepay.utils.timezone import make_aware, utcnow

logger = logging.getLogger(__name__)

router = APIRouter()

Store = Annotated[SubscriptionStore, Depends(deps.get_store)]
Gateway = Annotated[RazorpayGateway, Depends(deps.get_payment_gateway)]

@router.post("/create-order", response_model=CreateOrderResponse)
async def create_order(data: CreateOrderRequest, current_user: deps.CurrentUser, store: Store, gateway: Gateway):
    """Crée une commande Razorpay pour le prix de l'abonnement + frais de plateforme."""
    # Accès base dans le threadpool, appel HTTP à la passerelle sur la boucle
    sub = await run_in_threadpool(store.get, data.subscription_id, current_user.id)
    breakdown = payment_breakdown(sub.price)
    amount = rupees_to_paise(breakdown["totalAmount"])

    order = await gateway.create_order(
        amount,
        receipt=f"sub_{sub.id}",
        notes={"subscriptionId": str(sub.id), "serviceName": sub.service_name},
    )
    await run_in_threadpool(
        store.update_payment_info,
        sub.id,
        payment_status=PaymentStatus.PENDING,
        payment_method="razorpay",
        payment_order_id=order["id"],
        platform_fee=breakdown["platformFee"],
    )
    return CreateOrderResponse(
        order_id=order["id"],
        amount=amount,
        key_id=gateway.key_id,
        breakdown=breakdown,
    )

@router.post("/verify", response_model=SubscriptionEnvelope)
def verify_payment(data: VerifyPaymentRequest, current_user: deps.CurrentUser, store: Store, gateway: Gateway):
    sub = store.get(data.subscription_id, current_user.id)
    if sub.payment_order_id and sub.payment_order_id != data.order_id:
        raise ValidationError("Order does not match this subscription")

    if not gateway.verify_signature(data.order_id, data.payment_id, data.signature):
        store.update_payment_info(sub.id, payment_status=PaymentStatus.FAILED)
        logger.warning("⚠️ Signature de paiement invalide pour l'abonnement %s", sub.id)
        raise ValidationError("Invalid payment signature")

    breakdown = payment_breakdown(sub.price)
    sub = store.update_payment_info(
        sub.id,
        payment_status=PaymentStatus.PAID,
        payment_method="razorpay",
        paid_at=utcnow(),
        transaction_id=data.payment_id,
        platform_fee=breakdown["platformFee"],
        total_paid=breakdown["totalAmount"],
    )
    logger.info("💳 Paiement confirmé: %s (%s)", sub.service_name, data.payment_id)
    return SubscriptionEnvelope(message="Payment verified successfully", subscription=SubscriptionRead.from_model(sub))

@router.post("/manual", response_model=SubscriptionEnvelope)
def manual_payment(data: ManualPaymentRequest, current_user: deps.CurrentUser, store: Store):
    """Paiement déclaré par l'utilisateur (UPI), sans passerelle ni frais."""
    sub = store.get(data.subscription_id, current_user.id)
    sub = store.update_payment_info(
        sub.id,
        payment_status=PaymentStatus.MANUAL,
        payment_method=data.method,
        paid_at=utcnow(),
        transaction_id=data.transaction_id,
        platform_fee=0.0,
        total_paid=sub.price,
    )
    return SubscriptionEnvelope(message="Payment recorded", subscription=SubscriptionRead.from_model(sub))

@router.get("/transactions", response_model=List[Transaction])
def list_transactions(current_user: deps.CurrentUser, store: Store):
    subs = [s for s in store.list_by_owner(current_user.id) if s.payment_status is not None]
    subs.sort(key=lambda s: make_aware(s.paid_at or s.created_at), reverse=True)
    return [
        Transaction(
            subscription_id=s.id,
            service_name=s.service_name,
            amount=s.price,
            platform_fee=s.platform_fee or 0,
            total_paid=s.total_paid if s.total_paid is not None else s.price,
            payment_status=s.payment_status,
            payment_method=s.payment_method,
            transaction_id=s.transaction_id,
            payment_date=s.paid_at,
        )
        for s in subs
    ]
