from core.errors import LedgerError
from config import config
from db.store import LedgerStore
from schemas.ledger_schema import UserAccount, Referral
from sqlalchemy.exc import SQLAlchemyError
from decimal import Decimal
from typing import List, Optional
import logging
from utils.timing import timeit
from utils.logging_config import LEDGER_LOGGER_NAME

logger = logging.getLogger(__name__)
ledger_logger = logging.getLogger(LEDGER_LOGGER_NAME)

async def find_referrer(store: LedgerStore, referral_code: Optional[str]) -> Optional[UserAccount]:
    """Resolve a referral code to its owner; unknown codes and lookup failures yield None."""
    if not referral_code or not referral_code.strip():
        return None
    code = referral_code.strip().upper()
    try:
        referrer = await store.get_user_by_referral_code(code)
    except (LedgerError, SQLAlchemyError) as e:
        logger.error(f"Referrer lookup failed for code {code}: {e}")
        return None
    if referrer is None:
        logger.warning(f"Unknown referral code {code}; signing up without referrer")
    return referrer

@timeit("credit_referral")
async def credit_referral(store: LedgerStore, referrer_id: int, referred_id: int, reward_amount: Optional[Decimal] = None) -> Optional[Referral]:
    """
    Credit the referrer for a freshly created user.
    Runs after the referred account has been committed; any failure here is logged
    and dropped because the referral bonus must never block account creation.
    """
    reward = reward_amount if reward_amount is not None else config.get_referral_reward_amount()
    try:
        referral = await store.rpc(
            "process_referral_reward",
            referrer_id=referrer_id,
            referred_id=referred_id,
            reward_amount=reward,
        )
    except (LedgerError, SQLAlchemyError) as e:
        # Don't raise - referral credit is a bonus feature, shouldn't break signup
        logger.error(f"Error awarding referral reward to user {referrer_id} for user {referred_id}: {e}")
        return None

    ledger_logger.info(f"Awarded {reward} referral reward to user {referrer_id} for referred user {referred_id}")
    return referral

async def list_user_referrals(store: LedgerStore, user_id: int) -> List[Referral]:
    return await store.list_referrals(user_id)
