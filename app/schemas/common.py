"""
Response envelope schemas
"""

from typing import Any, Generic, Optional, TypeVar
from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorDetail(BaseModel):
    """Machine-readable error"""
    code: str = Field(..., description="Error code, e.g. INVALID_TRANSITION")
    message: str = Field(..., description="Human-readable message")


class SuccessResponse(BaseModel, Generic[T]):
    """Envelope for successful responses"""
    success: bool = Field(default=True)
    data: Optional[T] = Field(None, description="Response payload")


class ErrorResponse(BaseModel):
    """Envelope for error responses"""
    success: bool = Field(default=False)
    error: ErrorDetail


def ok(data: Any = None) -> dict:
    """Wrap a payload in the success envelope"""
    return {"success": True, "data": data}
