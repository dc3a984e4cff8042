"""
Authentication and access control:
- JWT bearer tokens via python-jose[cryptography]
- Password hashing via passlib[bcrypt]
- Two roles: staff (stock operations) and manager (transfers, bulk
  adjustments, retention, reports)
"""
from datetime import timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import logging

from stockledger.config import settings
from stockledger.database import get_db
from stockledger.crud.users import crud_user
from stockledger import models
from stockledger.schemas.inventory import UserRole
from stockledger.utils.dates import utcnow

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

security = HTTPBearer(auto_error=False)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    now = utcnow()
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "iat": now})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify JWT token"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT decode error: {e}")
        return None

def authenticate_user(db: Session, username: str, password: str) -> Optional[models.User]:
    user = crud_user.get_by_username(db, username)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> models.User:
    """Resolve the bearer token to an active user."""
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        logger.warning("Invalid JWT token provided")
        raise _unauthorized("Invalid authentication credentials")

    username = payload.get("sub")
    if username is None:
        logger.warning("JWT token missing 'sub' claim")
        raise _unauthorized("Invalid authentication credentials")

    user = crud_user.get_by_username(db, username)
    if user is None:
        logger.warning(f"User not found: {username}")
        raise _unauthorized("User not found")

    if not user.is_active:
        logger.warning(f"Inactive user attempted access: {username}")
        raise _unauthorized("Inactive user")

    return user

def require_manager(current_user: models.User = Depends(get_current_user)) -> models.User:
    """Require manager role."""
    if current_user.role != UserRole.MANAGER.value:
        logger.warning(f"Non-manager user attempted manager action: {current_user.username}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Manager privileges required"
        )
    return current_user
