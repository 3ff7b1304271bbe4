from sqlalchemy import Column, Integer, DateTime, Numeric, ForeignKey, UniqueConstraint, Index
from sqlalchemy.sql import func
from db.session import Base


class Referral(Base):
    __tablename__ = "referrals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    referrer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    referred_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    reward_amount = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    __table_args__ = (
        # A referred user can only ever produce one reward
        UniqueConstraint("referred_id", name="uq_referrals_referred"),
        Index("ix_referrals_referrer", "referrer_id"),
    )
