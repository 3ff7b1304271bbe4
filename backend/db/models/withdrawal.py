from sqlalchemy import Column, Integer, String, DateTime, Numeric, Text, ForeignKey, Index, CheckConstraint
from sqlalchemy.sql import func
from db.session import Base


class Withdrawal(Base):
    __tablename__ = "withdrawals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    account_name = Column(String(255), nullable=False)
    account_number = Column(String(64), nullable=False)
    bank_name = Column(String(255), nullable=False)
    status = Column(String(16), default="pending", nullable=False)
    requested_at = Column(DateTime(timezone=True), server_default=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)
    admin_notes = Column(Text, nullable=True)
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'approved', 'declined')", name="ck_withdrawals_status"),
        Index("ix_withdrawals_user", "user_id"),
        Index("ix_withdrawals_status", "status"),
    )
