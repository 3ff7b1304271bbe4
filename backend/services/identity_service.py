from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
import secrets

from core.config import settings
from core.errors import AuthenticationError
from core.security import create_session_token, decode_session_token, verify_password
from db.store import LedgerStore
from services.user_service import normalize_email
from utils.timing import timeit

logger = logging.getLogger(__name__)


class IdentityProvider:
    """Password login backed by the users table, with revocable JWT sessions.

    Each token carries a session id ("sid") recorded in auth_sessions; ending
    the session revokes that record so the token stops resolving even before
    it expires.
    """

    def __init__(self, store: LedgerStore, token_ttl: Optional[timedelta] = None):
        self.store = store
        self.token_ttl = token_ttl or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    @timeit("authenticate")
    async def authenticate(self, email: str, password: str) -> str:
        credentials = await self.store.get_password_hash(normalize_email(email))
        if not credentials or not verify_password(password, credentials["hashed_password"]):
            logger.info(f"Login rejected for {email}")
            raise AuthenticationError("Incorrect email or password")

        user_id = credentials["user_id"]
        session_id = secrets.token_urlsafe(32)
        await self.store.insert_auth_session(
            session_id=session_id,
            user_id=user_id,
            expires_at=datetime.now(timezone.utc) + self.token_ttl,
        )
        logger.info(f"Session opened for user {user_id}")
        return create_session_token(user_id, session_id, expires_delta=self.token_ttl)

    async def get_current_identity(self, token: str) -> Optional[int]:
        claims = decode_session_token(token)
        if claims is None:
            return None
        user_id, session_id = claims
        record = await self.store.get_auth_session(session_id)
        if record is None or record.revoked_at is not None or record.user_id != user_id:
            return None
        return user_id

    async def end_session(self, token: str) -> None:
        claims = decode_session_token(token)
        if claims is None:
            raise AuthenticationError()
        user_id, session_id = claims
        if await self.store.revoke_auth_session(session_id):
            logger.info(f"Session closed for user {user_id}")
