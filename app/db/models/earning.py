"""
Runner earning database model
Ledger row tracking the Lightning payout owed to a runner for one job
"""

from sqlalchemy import Column, Integer, BigInteger, String, Text, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.sql import func
from app.db.base import Base

EARNING_STATUS_PENDING = "pending"
EARNING_STATUS_PROCESSING = "processing"
EARNING_STATUS_COMPLETED = "completed"
EARNING_STATUS_FAILED = "failed"


class RunnerEarning(Base):
    """
    Model for runner earnings and payouts.

    Status flow: pending -> processing -> completed | failed, and
    failed -> processing again on retry. net = gross - fee for both units.
    """
    __tablename__ = "runner_earnings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    runner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="SET NULL"), unique=True, nullable=True)

    # Amounts
    amount_cents = Column(Integer, nullable=False)
    amount_sats = Column(BigInteger, nullable=False)
    platform_fee_cents = Column(Integer, nullable=False, default=0)
    platform_fee_sats = Column(BigInteger, nullable=False, default=0)
    net_amount_cents = Column(Integer, nullable=False)
    net_amount_sats = Column(BigInteger, nullable=False)

    # Payout
    status = Column(String(30), nullable=False, default=EARNING_STATUS_PENDING)
    payout_method = Column(String(30), nullable=False, default="lightning")
    lightning_address = Column(String(255), nullable=True)

    # Proof, only set on completed
    payment_hash = Column(String(64), nullable=True)
    payment_preimage = Column(String(64), nullable=True)

    # Status timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Error tracking
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_runner_earnings_status"
        ),
        CheckConstraint(
            "net_amount_cents + platform_fee_cents = amount_cents",
            name="ck_runner_earnings_net_cents"
        ),
        Index("idx_runner_earnings_runner", "runner_id", "status"),
        Index("idx_runner_earnings_status", "status", "created_at"),
        Index("idx_runner_earnings_payment_hash", "payment_hash"),
    )

    def __repr__(self):
        return f"<RunnerEarning(id={self.id}, job_id={self.job_id}, status='{self.status}')>"
