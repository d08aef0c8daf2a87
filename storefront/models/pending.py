from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, EmailStr, Field

class OtpPurpose(str, Enum):
    REGISTRATION = "registration"
    LOGIN = "login"

class PendingRegistration(BaseModel):
    """Account to create once the email owner confirms the code"""
    kind: Literal["registration"] = "registration"
    email: EmailStr
    full_name: str
    phone: Optional[str] = None

class PendingLogin(BaseModel):
    """Existing account to sign in once the code is confirmed"""
    kind: Literal["login"] = "login"
    email: EmailStr
    user_id: int

PendingOperation = Annotated[
    Union[PendingRegistration, PendingLogin],
    Field(discriminator="kind")
]

class OtpRecord(BaseModel):
    otp_id: int
    email: str
    purpose: OtpPurpose
    code_hash: str
    expires_at: datetime
    attempts: int = 0
    used: bool = False
    payload: PendingOperation
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
