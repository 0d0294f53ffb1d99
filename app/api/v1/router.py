"""
ErrandBit API router
"""

from fastapi import APIRouter
from app.api.v1 import jobs
from app.api.v1 import payments
from app.api.v1 import earnings
from app.api.v1 import reviews
from app.api.v1 import runners
from app.api.v1 import health

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
api_router.include_router(earnings.router, prefix="/earnings", tags=["earnings"])
api_router.include_router(reviews.router, prefix="/reviews", tags=["reviews"])
api_router.include_router(runners.router, prefix="/runners", tags=["runners"])
api_router.include_router(health.router, prefix="/health", tags=["service"])
