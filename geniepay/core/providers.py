"""
Clients des services externes, construits une seule fois au démarrage
puis injectés dans les routes (app.state.providers + dépendances FastAPI).
"""
import logging
from dataclasses import dataclass
from typing import Optional

from geniepay.core.config import Settings
from geniepay.services.ai_engine.intent_parser import IntentParser
from geniepay.services.ai_engine.text_generator import GeminiTextGenerator
from geniepay.services.blockchain_service import ChainClient
from geniepay.services.notification_service import EmailSender, NotificationService, SmsSender
from geniepay.services.payment_service import RazorpayGateway

logger = logging.getLogger(__name__)


@dataclass
class Providers:
    intent_parser: Optional[IntentParser]
    notifications: NotificationService
    payments: RazorpayGateway
    chain: ChainClient


def build_providers(settings: Settings) -> Providers:
    intent_parser = None
    if settings.GOOGLE_API_KEY:
        intent_parser = IntentParser(GeminiTextGenerator(settings.GOOGLE_API_KEY, settings.GEMINI_MODEL))
        logger.info("✅ Gemini initialized (%s)", settings.GEMINI_MODEL)
    else:
        logger.warning("⚠️ GOOGLE_API_KEY absent : /ai/command renverra 503")

    email = EmailSender(settings.EMAIL_HOST, settings.EMAIL_PORT, settings.EMAIL_USER, settings.EMAIL_PASSWORD)
    if email.is_configured:
        logger.info("✅ Email transporter initialized")
    sms = SmsSender(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN, settings.TWILIO_PHONE_NUMBER)
    if not sms.is_configured:
        logger.warning("⚠️ Twilio non configuré : les SMS partent dans les logs (mode dev)")

    chain = ChainClient(
        settings.WEB3_PROVIDER_URL,
        settings.CONTRACT_ADDRESS,
        settings.PRIVATE_KEY,
        explorer_tx_url=settings.EXPLORER_TX_URL,
    )

    return Providers(
        intent_parser=intent_parser,
        notifications=NotificationService(email, sms, otp_minutes=settings.OTP_EXPIRE_MINUTES),
        payments=RazorpayGateway(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET),
        chain=chain,
    )
