from core.errors import AuthorizationError
from config import config
from db.store import LedgerStore
from schemas.ledger_schema import LedgerStats, UserAccount, Withdrawal, WithdrawalStatus
from schemas.user_schema import User
from typing import List, Optional
import logging
from utils.timing import timeit
from utils.logging_config import LEDGER_LOGGER_NAME

logger = logging.getLogger(__name__)
ledger_logger = logging.getLogger(LEDGER_LOGGER_NAME)

def _require_admin(actor: Optional[User]) -> None:
    if actor is None or not actor.is_admin:
        logger.warning(f"Non-admin user {getattr(actor, 'id', None)} attempted an admin operation")
        raise AuthorizationError()

@timeit("process_withdrawal")
async def process_withdrawal(
    store: LedgerStore,
    actor: Optional[User],
    withdrawal_id: int,
    status: str,
    admin_notes: Optional[str] = None,
) -> Withdrawal:
    """Approve or decline a pending withdrawal.

    Approval debits amount + flat charge from the owner's available balance,
    re-checking it inside the same transaction that flips the status.
    """
    _require_admin(actor)
    notes = (admin_notes or "").strip() or None
    withdrawal = await store.rpc(
        "process_withdrawal",
        withdrawal_id=withdrawal_id,
        new_status=WithdrawalStatus(status),
        notes=notes,
        charge=config.get_withdrawal_charge(),
    )
    ledger_logger.info(f"Withdrawal {withdrawal_id} {withdrawal.status.value} by admin {actor.id}")
    return withdrawal

async def get_all_users(store: LedgerStore, actor: Optional[User]) -> List[UserAccount]:
    _require_admin(actor)
    return await store.list_users(include_admins=False)

async def get_all_withdrawals(store: LedgerStore, actor: Optional[User], status: Optional[str] = None) -> List[Withdrawal]:
    _require_admin(actor)
    return await store.list_withdrawals(status=WithdrawalStatus(status) if status else None)

async def get_stats(store: LedgerStore, actor: Optional[User]) -> LedgerStats:
    _require_admin(actor)
    return await store.stats()
