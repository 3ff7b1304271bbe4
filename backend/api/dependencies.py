from fastapi import Depends, Request
from core.security import oauth2_scheme
from core.errors import AuthenticationError, AuthorizationError
from schemas.user_schema import User as UserSchema
from db.store import LedgerStore
from services.identity_service import IdentityProvider
import logging

logger = logging.getLogger(__name__)

def get_store(request: Request) -> LedgerStore:
    return request.app.state.store

def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    identity: IdentityProvider = Depends(get_identity_provider),
    store: LedgerStore = Depends(get_store),
) -> UserSchema:
    user_id = await identity.get_current_identity(token)
    if user_id is None:
        raise AuthenticationError()

    account = await store.get_user(user_id)
    if account is None:
        logger.warning(f"Session resolved to missing user {user_id}")
        raise AuthenticationError()

    return UserSchema(
        id=account.id,
        email=account.email,
        full_name=account.full_name,
        is_admin=account.is_admin,
    )

async def admin_required(current_user: UserSchema = Depends(get_current_user)) -> UserSchema:
    if not current_user.is_admin:
        raise AuthorizationError()
    return current_user
