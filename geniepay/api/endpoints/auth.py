from typing import Annotated
from fastapi import APIRouter, BackgroundTasks, Depends

from geniepay.api import deps
from geniepay.schemas.auth import (
    AuthResponse,
    LoginRequest,
    PhoneRequest,
    ResendOtpRequest,
    SignupRequest,
    SignupResponse,
    UserPublic,
    UserUpdate,
    VerifyOtpRequest,
    VerifyPhoneOtpRequest,
)
from geniepay.services.auth_service import AuthService
from geniepay.services.notification_service import NotificationService
from geniepay.services.otp import mask_phone

router = APIRouter()

def get_auth_service(
    db: deps.DbSession,
    notifications: Annotated[NotificationService, Depends(deps.get_notifications)],
) -> AuthService:
    return AuthService(db, notifications)

Auth = Annotated[AuthService, Depends(get_auth_service)]

@router.post("/signup", response_model=SignupResponse)
async def signup(data: SignupRequest, auth: Auth):
    """Crée un compte non vérifié et envoie le code OTP."""
    user = await auth.signup(data)
    return SignupResponse(
        message="Verification code sent. Please check your email.",
        requires_verification=True,
        email=user.email,
    )

@router.post("/verify-otp", response_model=AuthResponse)
def verify_otp(
    data: VerifyOtpRequest,
    auth: Auth,
    background_tasks: BackgroundTasks,
    notifications: Annotated[NotificationService, Depends(deps.get_notifications)],
):
    user, token = auth.verify_email_otp(data.email, data.otp)
    # Email de bienvenue envoyé après la réponse, sans bloquer ni échouer
    background_tasks.add_task(notifications.best_effort, notifications.send_welcome, user.email, user.name)
    return AuthResponse(
        message="Email verified successfully",
        token=token,
        user=UserPublic.model_validate(user),
    )

@router.post("/resend-otp")
async def resend_otp(data: ResendOtpRequest, auth: Auth):
    user = await auth.resend_email_otp(data.email)
    return {"message": "Verification code resent", "email": user.email}

@router.post("/login", response_model=AuthResponse)
def login(data: LoginRequest, auth: Auth):
    user, token = auth.login(data.email, data.password)
    return AuthResponse(message="Login successful", token=token, user=UserPublic.model_validate(user))

# --- Connexion par SMS ---
@router.post("/auth/phone-login")
async def phone_login(data: PhoneRequest, auth: Auth):
    phone = await auth.send_phone_login_code(data.phone)
    return {"message": "OTP sent successfully", "phone": mask_phone(phone)}

@router.post("/auth/resend-phone-otp")
async def resend_phone_otp(data: PhoneRequest, auth: Auth):
    phone = await auth.send_phone_login_code(data.phone)
    return {"message": "OTP resent successfully", "phone": mask_phone(phone)}

@router.post("/auth/verify-phone-otp", response_model=AuthResponse)
def verify_phone_otp(data: VerifyPhoneOtpRequest, auth: Auth):
    user, token = auth.verify_phone_otp(data.phone, data.otp)
    return AuthResponse(message="Login successful", token=token, user=UserPublic.model_validate(user))

# --- Profil ---
@router.get("/me", response_model=UserPublic)
def read_me(current_user: deps.CurrentUser):
    return UserPublic.model_validate(current_user)

@router.patch("/me", response_model=UserPublic)
def update_me(data: UserUpdate, current_user: deps.CurrentUser, auth: Auth):
    """Seuls le wallet et le téléphone sont modifiables."""
    user = auth.update_profile(current_user, wallet_address=data.wallet_address, phone=data.phone)
    return UserPublic.model_validate(user)
