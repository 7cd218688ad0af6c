"""
Shared API dependencies
Database handle, clock, caller identity and service factories
"""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.common import CurrentUser
from app.services.study_session_service import StudySessionService
from app.services.test_session_service import TestSessionService
from app.utils.clock import Clock, epoch_seconds

logger = logging.getLogger(__name__)


async def get_db() -> AsyncIOMotorDatabase:
    """Dependency to get MongoDB database instance"""
    from app.db.mongodb import get_database
    return get_database()


def get_clock() -> Clock:
    """Dependency returning the wall clock (overridden in tests)"""
    return epoch_seconds


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None)
) -> CurrentUser:
    """
    Caller identity set by the upstream auth layer

    Raises:
        HTTPException: 401 when no identity was forwarded
    """
    if not x_user_id or not x_user_id.strip():
        logger.warning("⚠️ Request without X-User-Id header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )
    return CurrentUser(
        id=x_user_id.strip(),
        isAdmin=(x_user_role or "").strip().lower() == "admin"
    )


def get_study_session_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    clock: Clock = Depends(get_clock)
) -> StudySessionService:
    """Dependency to get StudySessionService instance"""
    return StudySessionService(db=db, clock=clock)


def get_test_session_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    clock: Clock = Depends(get_clock)
) -> TestSessionService:
    """Dependency to get TestSessionService instance"""
    return TestSessionService(db=db, clock=clock)
