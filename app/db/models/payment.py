"""
Payment database model
Records a client's Lightning payment for a job
"""

from sqlalchemy import Column, Integer, BigInteger, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from app.db.base import Base


class Payment(Base):
    """
    One row per paid job.

    The unique job_id makes a concurrent double confirmation fail at insert
    time instead of producing two payment rows.
    """
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), unique=True, nullable=False)

    payment_hash = Column(String(64), unique=True, nullable=True)
    preimage = Column(String(64), nullable=True)
    amount_sats = Column(BigInteger, nullable=False)

    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Payment(id={self.id}, job_id={self.job_id}, amount_sats={self.amount_sats})>"
