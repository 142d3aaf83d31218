import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .models import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_user_by_token(db: Session, token: str) -> User | None:
    """Resolve the account that owns a bearer token issued at OTP login"""
    if not token:
        return None
    return db.query(User).filter(User.api_token == token).first()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current authenticated user from the Authorization header"""
    if not credentials:
        logger.warning("❌ No credentials provided")
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    user = get_user_by_token(db, credentials.credentials)
    if not user:
        logger.warning("❌ Authentication failed: unknown bearer token")
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    if not user.is_active:
        logger.warning(f"❌ Authentication failed: user {user.id} is deactivated")
        raise HTTPException(status_code=403, detail="Account is deactivated")

    return user
