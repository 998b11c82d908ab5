import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

import httpx

from geniepay.core.errors import ProviderUnavailable

logger = logging.getLogger(__name__)

# Frais de la passerelle : 2 %, minimum ₹3
PLATFORM_FEE_PERCENTAGE = 2
PLATFORM_MIN_FEE = 3.0


def calculate_platform_fee(amount: float) -> float:
    fee = amount * PLATFORM_FEE_PERCENTAGE / 100
    return round(max(fee, PLATFORM_MIN_FEE), 2)


def payment_breakdown(amount: float) -> Dict[str, float]:
    fee = calculate_platform_fee(amount)
    return {
        "subscriptionAmount": round(amount, 2),
        "platformFee": fee,
        "totalAmount": round(amount + fee, 2),
    }


def rupees_to_paise(rupees: float) -> int:
    return int(round(rupees * 100))


class RazorpayGateway:
    API_URL = "https://api.razorpay.com/v1"

    def __init__(self, key_id: Optional[str], key_secret: Optional[str], timeout: float = 15.0):
        self.key_id = key_id
        self.key_secret = key_secret
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def _require_config(self) -> None:
        if not self.is_configured:
            raise ProviderUnavailable("Payment gateway not configured")

    async def create_order(self, amount_paise: int, receipt: str, notes: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self._require_config()
        body = {
            "amount": amount_paise,
            "currency": "INR",
            "receipt": receipt,
            "notes": notes or {},
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.API_URL}/orders", json=body,
                                             auth=(self.key_id, self.key_secret))
        except httpx.HTTPError as e:
            logger.error("❌ Razorpay injoignable: %s", e)
            raise ProviderUnavailable("Payment gateway unavailable") from e

        if response.status_code != 200:
            logger.error("❌ Razorpay (%s): %s", response.status_code, response.text)
            raise ProviderUnavailable("Payment gateway refused the order")

        order = response.json()
        logger.info("💳 Commande Razorpay créée: %s", order.get("id"))
        return order

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """HMAC-SHA256("order_id|payment_id") avec le secret de la clé."""
        self._require_config()
        expected = hmac.new(
            self.key_secret.encode(),
            f"{order_id}|{payment_id}".encode(),
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected, signature or "")
