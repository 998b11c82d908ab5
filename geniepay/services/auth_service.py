import logging
from typing import Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from fastapi.concurrency import run_in_threadpool
from sqlmodel import Session, select

from geniepay.core.errors import (
    ForbiddenError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from geniepay.core.security import create_access_token, hash_password, verify_password
from geniepay.models.user import User
from geniepay.schemas.auth import SignupRequest
from geniepay.services.notification_service import NotificationService
from geniepay.services.otp import check_otp, generate_otp, normalize_phone, otp_expiration

logger = logging.getLogger(__name__)


class AuthService:
    """
    Inscription en deux temps (compte non vérifié -> code OTP -> vérifié),
    connexion par mot de passe ou par code SMS.
    """

    def __init__(self, db: Session, notifications: NotificationService):
        self.db = db
        self.notifications = notifications

    def _save(self, user: User) -> User:
        try:
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("❌ Sauvegarde utilisateur impossible: %s", e)
            raise StoreUnavailableError() from e
        return user

    def get_by_email(self, email: str) -> Optional[User]:
        statement = select(User).where(User.email == email.strip().lower())
        return self.db.exec(statement).first()

    def get_by_phone(self, phone: str) -> Optional[User]:
        statement = select(User).where(User.phone == phone)
        return self.db.exec(statement).first()

    def _check_phone_available(self, phone: str, user: Optional[User] = None) -> None:
        owner = self.get_by_phone(phone)
        if owner and (user is None or owner.id != user.id):
            raise ValidationError("Phone number already registered")

    def _require_verified(self, user: User) -> None:
        if not user.is_verified:
            raise ForbiddenError(
                "Please verify your email before logging in",
                requiresVerification=True,
                email=user.email,
            )

    async def _deliver_email_code(self, email: str, name: str, code: str) -> None:
        """L'envoi du code ne bloque jamais l'inscription : le code peut être renvoyé."""
        try:
            await self.notifications.send_email_code(email, name, code)
        except Exception as e:
            logger.error("❌ Code de vérification non délivré à %s: %s", email, e)

    # --- INSCRIPTION ---
    def _register(self, data: SignupRequest) -> User:
        phone = normalize_phone(data.phone) if data.phone else None

        user = self.get_by_email(data.email)
        if user and user.is_verified:
            raise ValidationError("User already exists with this email")
        if phone:
            self._check_phone_available(phone, user)

        if not user:
            user = User(name=data.name, email=data.email, hashed_password="")

        # Ré-inscription d'un compte jamais vérifié : on écrase les données
        user.name = data.name
        user.hashed_password = hash_password(data.password)
        user.wallet_address = data.wallet_address or None
        user.phone = phone
        user.is_verified = False
        user.email_otp = generate_otp()
        user.email_otp_expires = otp_expiration()
        return self._save(user)

    async def signup(self, data: SignupRequest) -> User:
        # Accès base dans le threadpool, envoi du code sur la boucle
        user = await run_in_threadpool(self._register, data)
        logger.info("📝 Inscription en attente de vérification: %s", user.email)
        # Le code email ne part que par email : il prouve la possession de l'adresse
        await self._deliver_email_code(user.email, user.name, user.email_otp)
        return user

    def verify_email_otp(self, email: str, otp: str) -> Tuple[User, str]:
        user = self.get_by_email(email)
        if not user:
            raise NotFoundError("User not found")
        if user.is_verified:
            raise ValidationError("Email already verified")
        check_otp(user.email_otp, user.email_otp_expires, otp)

        user.is_verified = True
        user.email_otp = None
        user.email_otp_expires = None
        self._save(user)
        logger.info("✅ Email vérifié: %s", user.email)
        return user, create_access_token(subject=user.id)

    def _renew_email_code(self, email: str) -> User:
        user = self.get_by_email(email)
        if not user:
            raise NotFoundError("User not found")
        if user.is_verified:
            raise ValidationError("Email already verified")
        user.email_otp = generate_otp()
        user.email_otp_expires = otp_expiration()
        return self._save(user)

    async def resend_email_otp(self, email: str) -> User:
        user = await run_in_threadpool(self._renew_email_code, email)
        await self._deliver_email_code(user.email, user.name, user.email_otp)
        return user

    # --- CONNEXION ---
    def login(self, email: str, password: str) -> Tuple[User, str]:
        user = self.get_by_email(email)
        if not user or not verify_password(password, user.hashed_password):
            raise ValidationError("Invalid credentials")
        self._require_verified(user)
        return user, create_access_token(subject=user.id)

    def _issue_phone_code(self, phone: str) -> Tuple[str, str]:
        phone = normalize_phone(phone)
        user = self.get_by_phone(phone)
        if not user:
            raise NotFoundError("No account found with this phone number")
        # Le SMS ne remplace pas la vérification de l'email
        self._require_verified(user)
        user.phone_otp = generate_otp()
        user.phone_otp_expires = otp_expiration()
        self._save(user)
        return phone, user.phone_otp

    async def send_phone_login_code(self, phone: str) -> str:
        phone, code = await run_in_threadpool(self._issue_phone_code, phone)
        await self.notifications.send_phone_code(phone, code)
        return phone

    def verify_phone_otp(self, phone: str, otp: str) -> Tuple[User, str]:
        phone = normalize_phone(phone)
        user = self.get_by_phone(phone)
        if not user:
            raise NotFoundError("No account found with this phone number")
        self._require_verified(user)
        check_otp(user.phone_otp, user.phone_otp_expires, otp)

        user.phone_otp = None
        user.phone_otp_expires = None
        self._save(user)
        return user, create_access_token(subject=user.id)

    # --- PROFIL ---
    def update_profile(self, user: User, wallet_address: Optional[str] = None,
                       phone: Optional[str] = None) -> User:
        if wallet_address is not None:
            user.wallet_address = wallet_address.strip() or None
        if phone is not None:
            if phone.strip():
                normalized = normalize_phone(phone)
                self._check_phone_available(normalized, user)
                user.phone = normalized
            else:
                user.phone = None
        return self._save(user)
