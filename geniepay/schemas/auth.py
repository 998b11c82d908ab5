from typing import Optional
from uuid import UUID
from pydantic import EmailStr, Field, field_validator

from geniepay.schemas.common import CamelModel

class SignupRequest(CamelModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    wallet_address: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()

class VerifyOtpRequest(CamelModel):
    email: EmailStr
    otp: str = Field(min_length=4, max_length=8)

class ResendOtpRequest(CamelModel):
    email: EmailStr

class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)

class PhoneRequest(CamelModel):
    phone: str = Field(min_length=10)

class VerifyPhoneOtpRequest(CamelModel):
    phone: str = Field(min_length=10)
    otp: str = Field(min_length=4, max_length=8)

class UserUpdate(CamelModel):
    wallet_address: Optional[str] = None
    phone: Optional[str] = None

class UserPublic(CamelModel):
    id: UUID
    name: str
    email: str
    wallet_address: Optional[str] = None
    phone: Optional[str] = None
    is_verified: bool

class SignupResponse(CamelModel):
    message: str
    requires_verification: bool = True
    email: str

class AuthResponse(CamelModel):
    message: str
    token: str
    user: UserPublic
