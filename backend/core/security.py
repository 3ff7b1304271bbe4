from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi.security import OAuth2PasswordBearer
from core.config import settings
import logging

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Routers are mounted without a prefix, so the password form posts to '/login'
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/login")

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a JWT with an expiry (defaults to ACCESS_TOKEN_EXPIRE_MINUTES)"""
    to_encode = data.copy()
    ttl = expires_delta if expires_delta is not None else timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode["exp"] = datetime.now(timezone.utc) + ttl
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def create_session_token(user_id: int, session_id: str, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token({"sub": str(user_id), "sid": session_id}, expires_delta=expires_delta)

def verify_token(token: str) -> Optional[dict]:
    """Decode a JWT; None when the signature, expiry or subject is bad"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT decode failed: {e}")
        return None
    if payload.get("sub") is None:
        return None
    return payload

def decode_session_token(token: Optional[str]) -> Optional[Tuple[int, str]]:
    """Return (user_id, session_id) for a well-formed session token"""
    payload = verify_token(token) if token else None
    if not payload or not payload.get("sid"):
        return None
    try:
        return int(payload["sub"]), payload["sid"]
    except (TypeError, ValueError):
        return None
