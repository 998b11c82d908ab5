from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel, AutoString
from pydantic import EmailStr

from geniepay.utils.timezone import utcnow

class User(SQLModel, table=True):
    __tablename__ = "users"  # Nom explicite de la table dans Postgres

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    name: str
    # Toujours stocké en minuscules (unicité insensible à la casse)
    email: EmailStr = Field(unique=True, index=True, sa_type=AutoString)
    hashed_password: str

    wallet_address: Optional[str] = None
    phone: Optional[str] = Field(default=None, index=True)

    is_verified: bool = Field(default=False)

    # Codes OTP transitoires (canal email et canal téléphone)
    email_otp: Optional[str] = None
    email_otp_expires: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    phone_otp: Optional[str] = None
    phone_otp_expires: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
