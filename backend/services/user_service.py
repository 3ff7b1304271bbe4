from schemas.user_schema import UserCreate
from schemas.ledger_schema import UserAccount
from core.security import get_password_hash
from core.config import settings
from core.errors import ValidationError, NotFoundError, TransientCollaboratorError
from config import config
from db.store import LedgerStore
from services.referral_service import find_referrer, credit_referral
from typing import Any, Dict
import logging
import random
import string
from utils.timing import timeit

logger = logging.getLogger(__name__)

def normalize_email(email: str) -> str:
    """Normalize email address to prevent duplicate accounts using tricks

    - Converts to lowercase
    - Removes dots for Gmail-style domains
    - Removes + aliases
    - Strips whitespace
    """
    email = email.strip().lower()
    try:
        local, domain = email.split('@', 1)
        # Remove + aliases (everything after + in local part)
        local = local.split('+')[0]
        # Remove dots for Gmail/Google Mail domains
        gmail_domains = ['gmail.com', 'googlemail.com', 'gmail.co.uk']
        if domain in gmail_domains:
            local = local.replace('.', '')
        return f"{local}@{domain}"
    except ValueError:
        # Invalid email format, return as-is (will be caught by validation)
        return email

def generate_referral_code() -> str:
    """Generate an 8-character alphanumeric referral code"""
    chars = string.ascii_uppercase + string.digits
    return ''.join(random.choice(chars) for _ in range(8))

async def _unique_referral_code(store: LedgerStore, max_attempts: int = 10) -> str:
    for _ in range(max_attempts):
        referral_code = generate_referral_code()
        if not await store.referral_code_exists(referral_code):
            return referral_code
    raise TransientCollaboratorError("Failed to generate unique referral code")

@timeit("create_user")
async def create_user(store: LedgerStore, user: UserCreate, is_admin: bool = False) -> UserAccount:
    """Create a new user, crediting the referrer when a known referral code is given.

    An unknown code or a failed credit never blocks the signup itself.
    """
    normalized_email = normalize_email(user.email)
    if await store.get_user_by_email(normalized_email) is not None:
        raise ValidationError("Email already registered")

    referrer = await find_referrer(store, user.referral_code)
    referral_code = await _unique_referral_code(store)

    account = await store.insert_user(
        email=normalized_email,
        full_name=user.full_name,
        hashed_password=get_password_hash(user.password),
        referral_code=referral_code,
        referred_by=referrer.id if referrer else None,
        is_admin=is_admin,
    )
    logger.info(f"Created user {account.id} ({account.email})")

    if referrer is not None:
        await credit_referral(store, referrer.id, account.id)

    return account

def build_referral_link(referral_code: str) -> str:
    base = settings.FRONTEND_URL.rstrip("/")
    return f"{base}{config.get_referral_link_path()}?ref={referral_code}"

async def get_user_profile(store: LedgerStore, user_id: int) -> Dict[str, Any]:
    account = await store.get_user(user_id)
    if account is None:
        raise NotFoundError("User not found")
    profile = account.model_dump()
    profile["referral_link"] = build_referral_link(account.referral_code)
    return profile

async def ensure_admin_user(store: LedgerStore) -> None:
    """Create the bootstrap administrator from settings when it does not exist yet"""
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        logger.info("ADMIN_EMAIL/ADMIN_PASSWORD not set; skipping admin bootstrap")
        return
    if await store.get_user_by_email(normalize_email(settings.ADMIN_EMAIL)) is not None:
        return
    admin = UserCreate(
        email=settings.ADMIN_EMAIL,
        password=settings.ADMIN_PASSWORD,
        full_name=settings.ADMIN_FULL_NAME,
    )
    account = await create_user(store, admin, is_admin=True)
    logger.info(f"Bootstrap admin {account.email} created")
