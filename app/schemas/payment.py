"""
Payment-related Pydantic schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class ConfirmPaymentRequest(BaseModel):
    """Client confirms they have paid for a completed job"""
    job_id: int = Field(..., gt=0)
    preimage: Optional[str] = Field(None, description="64 hex character payment preimage")
    payment_hash: Optional[str] = Field(None, description="64 hex character payment hash")


class CreateInvoiceRequest(BaseModel):
    """Request a mock invoice for a job"""
    job_id: int = Field(..., gt=0)
    amount_sats: Optional[int] = Field(None, gt=0, description="Defaults to the job's price in sats")


class ConfirmPaymentResponse(BaseModel):
    job_id: int
    status: str
    payment_id: int
    amount_sats: int


class InvoiceResponse(BaseModel):
    payment_request: str
    payment_hash: str
    amount_sats: int
    expires_at: datetime
    test_preimage: Optional[str] = Field(None, description="Only present for mock invoices")


class PaymentInstructionResponse(BaseModel):
    job_id: int
    amount_cents: int
    amount_sats: int
    runner_id: Optional[int] = None
    lightning_address: Optional[str] = None


class PaymentResponse(BaseModel):
    """Recorded payment"""
    id: int
    job_id: int
    payment_hash: Optional[str] = None
    amount_sats: int
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentStatsResponse(BaseModel):
    total_payments: int
    total_amount_sats: int
    average_amount_sats: int
