import re
import secrets
from datetime import datetime, timedelta
from typing import Optional

from geniepay.core.config import settings
from geniepay.core.errors import ValidationError
from geniepay.utils.timezone import utcnow, is_expired

# Numéros indiens : 10 chiffres commençant par 6-9, préfixe 91 optionnel
INDIAN_MOBILE = re.compile(r"^(91)?[6-9]\d{9}$")


def generate_otp() -> str:
    """Code de vérification à 6 chiffres."""
    return str(100000 + secrets.randbelow(900000))


def otp_expiration(minutes: Optional[int] = None) -> datetime:
    """Par défaut, le code expire au bout de 10 minutes."""
    return utcnow() + timedelta(minutes=minutes or settings.OTP_EXPIRE_MINUTES)


def check_otp(expected: Optional[str], expires_at: Optional[datetime], submitted: str) -> None:
    if not expected or not expires_at:
        raise ValidationError("No verification code found. Please request a new one.")
    if is_expired(expires_at):
        raise ValidationError("Verification code expired. Please request a new one.")
    if not secrets.compare_digest(expected, (submitted or "").strip()):
        raise ValidationError("Invalid verification code")


def normalize_phone(phone: str) -> str:
    """
    Valide et formate un numéro de téléphone en E.164.
    "98765 43210" -> "+919876543210"
    """
    digits = "".join(filter(str.isdigit, phone or ""))
    if not INDIAN_MOBILE.match(digits):
        raise ValidationError("Phone number must be a valid 10-digit Indian mobile number")
    if len(digits) == 10:
        digits = "91" + digits
    return "+" + digits


def mask_phone(phone: str) -> str:
    return phone[:3] + "*" * max(len(phone) - 7, 0) + phone[-4:]
