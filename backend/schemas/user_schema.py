from decimal import Decimal
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Literal, Optional

class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=1, max_length=255)
    referral_code: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Full name is required")
        return v

class User(BaseModel):
    """Authenticated caller as seen by the API layer"""
    id: int
    email: str
    full_name: str
    is_admin: bool = False

    class Config:
        from_attributes = True
        extra = "ignore"

class Token(BaseModel):
    access_token: str
    token_type: str

class WithdrawalCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    account_name: str = Field(..., max_length=255)
    account_number: str = Field(..., max_length=64)
    bank_name: str = Field(..., max_length=255)

    @field_validator("account_name", "account_number", "bank_name")
    @classmethod
    def _required_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field is required")
        return v

class WithdrawalProcess(BaseModel):
    status: Literal["approved", "declined"]
    admin_notes: Optional[str] = None
