from core.errors import BelowMinimumError, InsufficientBalanceError, NotFoundError
from config import config
from db.store import LedgerStore
from schemas.ledger_schema import Withdrawal
from schemas.user_schema import WithdrawalCreate
from typing import Any, Dict, List
import logging
from utils.timing import timeit
from utils.logging_config import LEDGER_LOGGER_NAME

logger = logging.getLogger(__name__)
ledger_logger = logging.getLogger(LEDGER_LOGGER_NAME)

def _money(amount) -> str:
    symbol = config.get_currency_config().get("symbol", "")
    return f"{symbol}{amount:.2f}"

@timeit("request_withdrawal")
async def request_withdrawal(store: LedgerStore, user_id: int, request: WithdrawalCreate) -> Withdrawal:
    """Validate and file a withdrawal request.

    The balance is only checked here, not reserved: it is debited when an
    administrator approves the request, which re-checks it.
    """
    minimum = config.get_withdrawal_minimum()
    charge = config.get_withdrawal_charge()

    if request.amount < minimum:
        raise BelowMinimumError(f"Minimum withdrawal amount is {_money(minimum)}")

    account = await store.get_user(user_id)
    if account is None:
        raise NotFoundError("User not found")

    if request.amount + charge > account.available_balance:
        raise InsufficientBalanceError(f"Withdrawal amount plus {_money(charge)} charge exceeds available balance")

    withdrawal = await store.insert_withdrawal(
        user_id=user_id,
        amount=request.amount,
        account_name=request.account_name,
        account_number=request.account_number,
        bank_name=request.bank_name,
    )
    ledger_logger.info(f"Withdrawal {withdrawal.id} of {request.amount} requested by user {user_id}")
    return withdrawal

async def list_user_withdrawals(store: LedgerStore, user_id: int) -> List[Withdrawal]:
    return await store.list_withdrawals(user_id=user_id)

async def get_wallet_info(store: LedgerStore, user_id: int) -> Dict[str, Any]:
    account = await store.get_user(user_id)
    if account is None:
        raise NotFoundError("User not found")
    return {
        "total_earnings": account.total_earnings,
        "available_balance": account.available_balance,
        "total_referrals": account.total_referrals,
        "minimum_withdrawal": config.get_withdrawal_minimum(),
        "withdrawal_charge": config.get_withdrawal_charge(),
        "currency": config.get_currency_config().get("code"),
    }
