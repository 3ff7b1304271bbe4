from sqlalchemy import Column, String, Integer, Boolean, DateTime, Numeric, Index, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from db.session import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False, default="")
    hashed_password = Column(String(255), nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    referral_code = Column(String(8), unique=True, nullable=False)
    referred_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    total_earnings = Column(Numeric(12, 2), default=0, nullable=False)
    available_balance = Column(Numeric(12, 2), default=0, nullable=False)
    total_referrals = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    __table_args__ = (
        CheckConstraint("available_balance >= 0", name="ck_users_balance_non_negative"),
        CheckConstraint("available_balance <= total_earnings", name="ck_users_balance_within_earnings"),
        Index("ix_users_referral_code", "referral_code"),
        Index("ix_users_referred_by", "referred_by"),
    )
