"""
Health check endpoint
"""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy import text

from app.core.config import settings
from app.db.base import Database, get_database
from app.schemas.common import ok

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def health(database: Database = Depends(get_database)):
    """
    Health check endpoint.
    """
    database_ok = True
    try:
        async with database.session() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database_ok = False

    return ok({
        "status": "healthy" if database_ok else "degraded",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "database": "connected" if database_ok else "unavailable",
        "lightning_provider": "lnbits" if settings.LNBITS_ADMIN_KEY else "simulated"
    })
