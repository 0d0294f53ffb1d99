"""
User and runner profile database models
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Numeric, CheckConstraint
from sqlalchemy.sql import func
from app.db.base import Base


class User(Base):
    """A marketplace account; the same user may post jobs and run them"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=True)
    display_name = Column(String(100), nullable=True)
    role = Column(String(20), nullable=False, default="client")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('client', 'runner', 'admin')", name="ck_users_role"),
    )

    def __repr__(self):
        return f"<User(id={self.id}, role='{self.role}')>"


class RunnerProfile(Base):
    """
    Runner-facing profile.

    The payout path only reads lightning_address; avg_rating and total_jobs
    are a cache refreshed by ReviewService.
    """
    __tablename__ = "runner_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    display_name = Column(String(100), nullable=False)
    bio = Column(Text, nullable=True)
    lightning_address = Column(String(255), nullable=True)  # user@domain

    avg_rating = Column(Numeric(3, 2), nullable=False, default=0)
    total_jobs = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<RunnerProfile(user_id={self.user_id}, lightning_address='{self.lightning_address}')>"
