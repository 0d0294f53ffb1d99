"""
Job database model
Stores an errand posted by a client and its lifecycle status
"""

from sqlalchemy import Column, Integer, BigInteger, String, Text, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.sql import func
from app.db.base import Base

# Canonical lifecycle vocabulary. "completed" is the awaiting-payment state,
# "paid" is the payment-confirmed state.
JOB_STATUS_OPEN = "open"
JOB_STATUS_ACCEPTED = "accepted"
JOB_STATUS_IN_PROGRESS = "in_progress"
JOB_STATUS_COMPLETED = "completed"
JOB_STATUS_PAID = "paid"
JOB_STATUS_CANCELLED = "cancelled"

JOB_STATUSES = (
    JOB_STATUS_OPEN,
    JOB_STATUS_ACCEPTED,
    JOB_STATUS_IN_PROGRESS,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_PAID,
    JOB_STATUS_CANCELLED,
)


class Job(Base):
    """
    Model for storing jobs.

    Status is only ever changed through JobService, which enforces the
    transition table and stamps the matching timestamp column.
    """
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Parties
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    runner_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    # Listing
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # Money (integer cents and sats, never floats)
    price_cents = Column(Integer, nullable=False)
    agreed_price_cents = Column(Integer, nullable=True)
    agreed_price_sats = Column(BigInteger, nullable=True)

    status = Column(String(30), nullable=False, default=JOB_STATUS_OPEN, index=True)

    # Timestamps, each set once by the transition that owns it
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('open', 'accepted', 'in_progress', 'completed', 'paid', 'cancelled')",
            name="ck_jobs_status"
        ),
        CheckConstraint("price_cents > 0", name="ck_jobs_price_positive"),
        Index("idx_jobs_created_at", "created_at"),
    )

    @property
    def payable_cents(self) -> int:
        """Amount owed for the job: the agreed price when negotiated, else the list price"""
        return self.agreed_price_cents if self.agreed_price_cents is not None else self.price_cents

    def __repr__(self):
        return f"<Job(id={self.id}, status='{self.status}', runner_id={self.runner_id})>"
