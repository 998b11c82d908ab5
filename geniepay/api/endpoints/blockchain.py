from typing import Annotated
from uuid import UUID
from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from web3 import AsyncWeb3

from geniepay.api import deps
from geniepay.core.errors import ProviderUnavailable, ValidationError
from geniepay.models.subscription import SubscriptionStatus
from geniepay.schemas.payment import BlockchainRequest
from geniepay.services.blockchain_service import ChainClient
from geniepay.services.subscription_store import SubscriptionStore

router = APIRouter()

def _record_status(store: SubscriptionStore, sub_id: int, owner_id: UUID, status: SubscriptionStatus, tx_hash: str) -> None:
    store.update_status(sub_id, owner_id, status)
    store.update_payment_info(sub_id, blockchain_txn_hash=tx_hash)

@router.post("/execute")
async def execute(
    data: BlockchainRequest,
    current_user: deps.CurrentUser,
    store: Annotated[SubscriptionStore, Depends(deps.get_store)],
    chain: Annotated[ChainClient, Depends(deps.get_chain_client)],
):
    """
    pay    : paiement on-chain (recipient + amount), hash stocké sur l'abonnement si fourni.
    pause  : pause on-chain + statut "paused".
    cancel : annulation on-chain + statut "cancelled".
    """
    if not chain.is_configured:
        raise ProviderUnavailable("Blockchain service not configured")

    if data.action == "pay":
        if not data.recipient or data.amount is None:
            raise ValidationError("Recipient and amount required")
        if not AsyncWeb3.is_address(data.recipient):
            raise ValidationError("Invalid recipient address")
        # On vérifie la propriété AVANT d'envoyer la transaction
        sub = None
        if data.subscription_id:
            sub = await run_in_threadpool(store.get, data.subscription_id, current_user.id)
        tx_hash = await chain.pay_subscription(data.recipient, data.amount)
        if sub is not None:
            await run_in_threadpool(store.update_payment_info, sub.id, blockchain_txn_hash=tx_hash)
    else:
        if not data.subscription_id:
            raise ValidationError("Subscription ID required")
        sub = await run_in_threadpool(store.get, data.subscription_id, current_user.id)
        if data.action == "pause":
            tx_hash = await chain.pause_subscription(sub.id)
            new_status = SubscriptionStatus.PAUSED
        else:
            tx_hash = await chain.cancel_subscription(sub.id)
            new_status = SubscriptionStatus.CANCELLED
        await run_in_threadpool(_record_status, store, sub.id, current_user.id, new_status, tx_hash)

    return {
        "message": "Blockchain transaction executed successfully",
        "transactionHash": tx_hash,
        "explorerUrl": chain.explorer_url(tx_hash),
    }
