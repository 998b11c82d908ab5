import logging
from typing import Any, Optional

from web3 import AsyncWeb3
from web3.providers.rpc import AsyncHTTPProvider

from geniepay.core.errors import ProviderUnavailable

logger = logging.getLogger(__name__)

# ABI simplifiée du contrat d'abonnement
CONTRACT_ABI = [
    {
        "inputs": [
            {"internalType": "address", "name": "recipient", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
        "name": "paySubscription",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "subscriptionId", "type": "uint256"}],
        "name": "pauseSubscription",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "subscriptionId", "type": "uint256"}],
        "name": "cancelSubscription",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

PAY_GAS = 200_000
STATUS_GAS = 100_000


class ChainClient:
    def __init__(self, rpc_url: Optional[str], contract_address: Optional[str], private_key: Optional[str],
                 explorer_tx_url: str = "https://mumbai.polygonscan.com/tx/", receipt_timeout: float = 120):
        self.explorer_tx_url = explorer_tx_url
        self.receipt_timeout = receipt_timeout
        self.private_key = private_key
        self.w3 = None
        self.contract = None
        if rpc_url and contract_address:
            self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
            self.contract = self.w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(contract_address), abi=CONTRACT_ABI
            )
            logger.info("✅ Web3 and Smart Contract initialized")

    @property
    def is_configured(self) -> bool:
        return bool(self.contract is not None and self.private_key)

    def explorer_url(self, tx_hash: str) -> str:
        return f"{self.explorer_tx_url}{tx_hash}"

    async def _send(self, call: Any, gas: int) -> str:
        if not self.is_configured:
            raise ProviderUnavailable("Blockchain service not configured")
        try:
            account = self.w3.eth.account.from_key(self.private_key)
            nonce = await self.w3.eth.get_transaction_count(account.address)
            tx = await call.build_transaction({"from": account.address, "nonce": nonce, "gas": gas})
            signed = account.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except Exception as e:
            logger.error("❌ Blockchain error: %s", e)
            raise ProviderUnavailable(f"Blockchain transaction failed: {e}") from e

        if receipt.get("status") == 0:
            raise ProviderUnavailable("Blockchain transaction reverted")
        tx_hex = self.w3.to_hex(tx_hash)
        logger.info("⛓️ Transaction confirmée: %s", tx_hex)
        return tx_hex

    async def pay_subscription(self, recipient: str, amount: int) -> str:
        if not self.is_configured:
            raise ProviderUnavailable("Blockchain service not configured")
        call = self.contract.functions.paySubscription(AsyncWeb3.to_checksum_address(recipient), int(amount))
        return await self._send(call, PAY_GAS)

    async def pause_subscription(self, subscription_id: int) -> str:
        if not self.is_configured:
            raise ProviderUnavailable("Blockchain service not configured")
        return await self._send(self.contract.functions.pauseSubscription(subscription_id), STATUS_GAS)

    async def cancel_subscription(self, subscription_id: int) -> str:
        if not self.is_configured:
            raise ProviderUnavailable("Blockchain service not configured")
        return await self._send(self.contract.functions.cancelSubscription(subscription_id), STATUS_GAS)
