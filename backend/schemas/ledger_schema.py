"""Typed records returned by the ledger store."""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


class UserAccount(BaseModel):
    id: int
    email: str
    full_name: str
    referral_code: str
    referred_by: Optional[int] = None
    total_earnings: Decimal
    available_balance: Decimal
    total_referrals: int
    is_admin: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Referral(BaseModel):
    id: int
    referrer_id: int
    referred_id: int
    reward_amount: Decimal
    created_at: Optional[datetime] = None
    # Joined from the referred user for dashboard listings
    referred_name: Optional[str] = None
    referred_email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class Withdrawal(BaseModel):
    id: int
    user_id: int
    amount: Decimal
    account_name: str
    account_number: str
    bank_name: str
    status: WithdrawalStatus
    requested_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    # Joined from the owning user for admin listings
    user_name: Optional[str] = None
    user_email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    def is_pending(self) -> bool:
        return self.status == WithdrawalStatus.PENDING


class LedgerStats(BaseModel):
    total_users: int
    total_earnings: Decimal
    pending_withdrawals: int
    total_referrals: int


class AuthSessionRecord(BaseModel):
    session_id: str
    user_id: int
    created_at: Optional[datetime] = None
    expires_at: datetime
    revoked_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
